"""
Pytest Configuration and Global Fixtures.

This file is automatically loaded by pytest and provides:
- Shared fixtures available to all tests
- Pytest markers configuration
"""

import sys
from pathlib import Path

import pytest

# Ensure the project root is importable for `tests.helpers`
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# Re-export fixtures from helpers module
# =============================================================================

from tests.helpers.fixtures import (  # noqa: E402
    FakeProvider,
    FakeRunner,
    make_credential,
    make_record,
)

from wingetwizard.config import WizardConfig  # noqa: E402
from wingetwizard.store import InventoryStore  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: requires a real winget executable or network access"
    )


# =============================================================================
# Function-Scoped Fixtures
# =============================================================================

@pytest.fixture
def config(tmp_path: Path) -> WizardConfig:
    """Configuration rooted in a temporary data directory."""
    return WizardConfig(winget_path="winget", data_dir=tmp_path)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a fresh FakeRunner instance."""
    return FakeRunner()


@pytest.fixture
def inventory() -> InventoryStore:
    """Create an empty inventory store."""
    return InventoryStore()
