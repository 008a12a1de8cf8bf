"""Database setup utilities.

This module exposes the ``db`` object used by models throughout the
application. The application factory binds it to the Flask app, so
import ``db`` from ``shareskippy`` rather than from this module
directly.
"""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
