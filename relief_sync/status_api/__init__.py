"""
Status API Module

Provides the HTTP status and wake surface for local UI clients.
"""

from .app import create_app

__all__ = ['create_app']
