"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table when create_all() runs
  2. Other modules can import from webauth.models directly
"""

from webauth.models.user import User, UserRole  # noqa: F401
