"""qwire - Questrade REST and streaming API client"""

from qwire.brokers.questrade import QuestradeClient
from qwire.core.config import Config, Environment

__all__ = ["Config", "Environment", "QuestradeClient"]

__version__ = "0.1.0"
