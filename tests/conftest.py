import logging

import pytest

from agentbar_matcher.logging_config import CorrelationIdFilter


@pytest.fixture(autouse=True)
def reset_configured_logging():
    """Drop handlers installed by ``configure_logging`` after each test."""

    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if any(isinstance(item, CorrelationIdFilter) for item in handler.filters):
            root.removeHandler(handler)
    root.setLevel(level)
