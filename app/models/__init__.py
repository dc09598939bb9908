"""
Utility Permit Tracker
SQLAlchemy instance shared by every model module.

Model modules import ``db`` from here; ``create_app`` binds it with
``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
