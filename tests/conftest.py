"""Root pytest fixtures for recordpipe tests."""

from __future__ import annotations

import pytest

from recordpipe.config import set_config


@pytest.fixture(autouse=True)
def reset_config() -> None:
    """Reload stream defaults from the environment for every test."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def accounts() -> list[dict[str, object]]:
    """Homogeneous batch of account records."""
    return [
        {"Id": "001", "Name": "Acme", "Industry": "Manufacturing"},
        {"Id": "002", "Name": "Globex", "Industry": "Energy"},
        {"Id": "003", "Name": "Initech", "Industry": "Software"},
    ]
