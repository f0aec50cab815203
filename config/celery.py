"""
Celery application; tasks are discovered from the installed apps.
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('shoeroom')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
