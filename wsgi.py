"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask db migrate -m "description"
    flask db upgrade
    flask run-jobs      # one escalation tick + proof expiry pass
"""

from readiness import create_app

app = create_app()
