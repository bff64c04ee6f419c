"""Notification delivery - notifier implementations, kill switches, effect dispatch"""
