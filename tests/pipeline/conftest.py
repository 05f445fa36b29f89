"""Shared fixtures for pipeline engine tests."""

from __future__ import annotations

import pytest


@pytest.fixture
def journal() -> list[str]:
    """Ordered record of step runs and compensations."""
    return []
