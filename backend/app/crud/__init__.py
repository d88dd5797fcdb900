from .user import user

__all__ = ["user"]
