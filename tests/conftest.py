"""Pytest configuration and shared fixtures."""

import pytest
from fakes import FakeClock, FakePlatform

from restgate.config.schema import GatewayConfig


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a fake clock starting at zero."""
    return FakeClock()


@pytest.fixture
def fake_platform() -> FakePlatform:
    """Provide a platform whose instances answer immediately."""
    return FakePlatform()


@pytest.fixture
def default_config() -> GatewayConfig:
    """Provide a default configuration for tests."""
    return GatewayConfig()
