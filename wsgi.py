"""
WSGI entry point (gunicorn / Flask-Migrate).

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
"""

from tourdesk import create_app

app = create_app()
