"""Domain layer - pure workflow logic and port interfaces"""
