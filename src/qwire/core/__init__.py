"""Core configuration for qwire"""

from .config import Config, Environment

__all__ = ["Config", "Environment"]
