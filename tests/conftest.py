"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers (Top-Down TDD):
    - component/  : Component tests (in-memory ledger, mocked boundaries)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


# =============================================================================
# Test Data Generators
# =============================================================================

class TestDataGenerator:
    """Generate unique test identities"""

    __test__ = False
    _counter = 0

    @classmethod
    def _next_id(cls) -> str:
        cls._counter += 1
        return f"{cls._counter:04d}"

    @classmethod
    def participant(cls) -> str:
        return f"0xbuyer{cls._next_id()}"

    @classmethod
    def organizer(cls) -> str:
        return f"0xmerchant{cls._next_id()}"


@pytest.fixture
def generate() -> TestDataGenerator:
    """Provide test data generator"""
    return TestDataGenerator()


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Settable clock injected in place of datetime.now"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now = self.now + delta
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at a fixed UTC instant"""
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def in_days(clock: FakeClock) -> Callable[[float], datetime]:
    """Absolute time N days after the clock's current time"""
    def _in_days(days: float) -> datetime:
        return clock.now + timedelta(days=days)
    return _in_days


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "golden: Golden tests documenting current behavior")
    config.addinivalue_line("markers", "integration: Integration tests against real infrastructure")
    config.addinivalue_line("markers", "requires_db: Requires a running PostgreSQL")
