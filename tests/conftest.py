"""Pytest configuration for tests."""

from datetime import datetime, timezone

import pytest

from valsim.config import Config
from valsim.core.base import RuntimeConfig, ValuationContext
from valsim.core.rate_limit import RateLimiter
from valsim.sims.sampler import NumpyUniformSource


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that make real API calls",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return
    skip = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _fresh_rate_limiters():
    RateLimiter.reset_instances()
    yield
    RateLimiter.reset_instances()


@pytest.fixture
def seeded_source() -> NumpyUniformSource:
    return NumpyUniformSource(seed=1234)


@pytest.fixture
def context() -> ValuationContext:
    return ValuationContext(
        config=Config(),
        run_timestamp=datetime.now(timezone.utc),
        runtime_config=RuntimeConfig(http_timeout=5),
    )
