"""Celery tasks for the mentorship backend."""
