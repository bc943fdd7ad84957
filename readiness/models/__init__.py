"""
Execution Readiness Portal
Shared SQLAlchemy instance.

Usage:
    from readiness.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
