"""
Middleware Package
==================

Starlette middleware shared by the API app.
"""

from .security import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
