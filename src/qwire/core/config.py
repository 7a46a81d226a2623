"""Configuration management for qwire"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger


class Environment(Enum):
    """Questrade login environment, resolved once per session"""

    PRODUCTION = "production"
    PRACTICE = "practice"

    @property
    def login_url(self) -> str:
        """OAuth2 base URL of the authorization server"""
        if self is Environment.PRACTICE:
            return "https://practicelogin.questrade.com/oauth2/"
        return "https://login.questrade.com/oauth2/"

    @classmethod
    def from_value(cls, value: "str | Environment") -> "Environment":
        """Parse an environment name

        Args:
            value: "production" (or "live") / "practice", case-insensitive

        Returns:
            Matching Environment

        Raises:
            ValueError: If the name is not recognised
        """
        if isinstance(value, Environment):
            return value
        name = value.strip().lower()
        if name == "live":
            name = cls.PRODUCTION.value
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unknown Questrade environment {value!r} "
                "(expected 'production' or 'practice')"
            ) from None


def mask_token(token: str) -> str:
    """Mask all but the last four characters of a token for logging"""
    if not token:
        return "<empty>"
    if len(token) <= 4:
        return "***"
    return f"***{token[-4:]}"


@dataclass
class Config:
    """Configuration for the Questrade client loaded from environment variables"""

    refresh_token: str
    environment: Environment = Environment.PRODUCTION

    # Upper bound for every HTTP call (seconds)
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """Load configuration from environment variables

        Variables:
            QUESTRADE_REFRESH_TOKEN: Refresh token from the Questrade app hub (required)
            QUESTRADE_ENVIRONMENT: "production" (default) or "practice"
            QUESTRADE_TIMEOUT: Request timeout in seconds (default 10)

        Args:
            env_file: Optional .env file loaded before reading the environment

        Returns:
            Config instance with values from environment

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        refresh_token = os.getenv("QUESTRADE_REFRESH_TOKEN", "").strip()
        if not refresh_token:
            raise ValueError(
                "Missing Questrade configuration: QUESTRADE_REFRESH_TOKEN"
            )

        environment = Environment.from_value(
            os.getenv("QUESTRADE_ENVIRONMENT", Environment.PRODUCTION.value)
        )

        timeout_env = os.getenv("QUESTRADE_TIMEOUT")
        request_timeout = cls.request_timeout
        if timeout_env:
            try:
                request_timeout = float(timeout_env)
            except ValueError:
                raise ValueError(
                    f"QUESTRADE_TIMEOUT must be a number, got {timeout_env!r}"
                ) from None
            if request_timeout <= 0:
                raise ValueError("QUESTRADE_TIMEOUT must be positive")

        config = cls(
            refresh_token=refresh_token,
            environment=environment,
            request_timeout=request_timeout,
        )

        logger.info("Configuration loaded:")
        logger.info(f"  Environment: {config.environment.value}")
        logger.info(f"  Login server: {config.environment.login_url}")
        logger.info(f"  Refresh token: {mask_token(config.refresh_token)}")
        logger.info(f"  Request timeout: {config.request_timeout}s")

        return config
