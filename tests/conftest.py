import pytest

from suspicious_login.config import DAY
from suspicious_login.ingest import LoginEvent, MemoryEventLog

NOW = 1_800_000_000


def unique_events(n, start, step=60, prefix="10.0"):
    """n logins, each from its own address and account."""
    return [
        LoginEvent(ip=f"{prefix}.{i // 256}.{i % 256}", uid=f"user{i}", timestamp=start + i * step)
        for i in range(n)
    ]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def split_log():
    # 100 logins two weeks ago, 30 logins in the last week
    training = unique_events(100, NOW - 14 * DAY, prefix="10.1")
    validation = unique_events(30, NOW - 3 * DAY, prefix="10.2")
    return MemoryEventLog(training + validation)


@pytest.fixture
def make_events():
    return unique_events
