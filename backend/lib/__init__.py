"""Backend utilities"""
from .auth import get_current_user
from .logger import get_logger, setup_logging

__all__ = ["get_current_user", "get_logger", "setup_logging"]
