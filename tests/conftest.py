import pytest
from unittest.mock import AsyncMock, MagicMock

from imagen_bridge.core import BridgeConfig


@pytest.fixture
def config():
    """Config with a dummy API key and a fake upstream base URL."""
    return BridgeConfig(api_key="test-key", api_base_url="https://upstream.test/v1beta")


@pytest.fixture
def upstream():
    """Request manager double; tests set post_json's return value or side effect."""
    manager = MagicMock()
    manager.post_json = AsyncMock(return_value={})
    manager.close = AsyncMock()
    return manager
