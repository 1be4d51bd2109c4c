"""
Database support for the durable audit sink.
"""
from .base import Base
from .session import Database

__all__ = ['Base', 'Database']
