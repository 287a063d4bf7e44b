"""
Tourdesk — SQLAlchemy models.

The shared ``db`` handle is created here and bound to the Flask app in
``tourdesk.create_app``. Model modules import it as ``from tourdesk.models import db``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
