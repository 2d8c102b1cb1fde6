"""Services module"""
from .notifier import ClientHub

__all__ = ["ClientHub"]
