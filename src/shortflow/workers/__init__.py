"""Celery workers: effect retries and the periodic deadline scan"""
