"""
Database Module

This module provides database configuration and the declarative base for the
practice backend.
"""

from therapy_practice.database.base import Base, ModelBase, metadata

__all__ = ['Base', 'ModelBase', 'metadata']
