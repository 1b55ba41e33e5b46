"""
Celery application factory.
"""

from celery import Celery

# Task modules are imported when the worker starts
celery_app = Celery(
    "imagepipe",
    include=[
        "imagepipe.tasks.maintenance_tasks",
        "imagepipe.tasks.processing_tasks",
    ],
)
celery_app.config_from_object("celeryconfig")
