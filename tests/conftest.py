"""Pytest fixtures for qwire tests"""

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def quiet_loguru():
    """Keep loguru's default stderr sink out of test output

    Tests that assert on log lines add their own sink.
    """
    logger.remove()
    yield
    logger.remove()
