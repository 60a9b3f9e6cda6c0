"""
Declarative base shared by every model and by the Flask-SQLAlchemy handle.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
