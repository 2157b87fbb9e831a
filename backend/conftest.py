"""Root conftest: load test environment variables and configure structlog for tests."""

import logging
from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import QUIET_LOGGERS, shared_processors

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Route structlog through stdlib logging so caplog sees connection manager events.
structlog.configure(
    processors=shared_processors(),
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)

for _name in QUIET_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
