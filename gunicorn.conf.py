"""Gunicorn settings; the listening port comes from $PORT."""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '4000')}"
workers = int(os.environ.get('WEB_CONCURRENCY', '2'))
wsgi_app = 'config.wsgi:application'
accesslog = '-'
