"""Database models"""

from todoapi.models.user import User

__all__ = ["User"]
