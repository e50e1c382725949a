import pytest

from logtally.config import AGGREGATE_PATH_ENV_VAR, ENABLE_ENV_VAR
from logtally.models import EventKey, Snapshot
from logtally.store import AggregateStore


def make_snapshot(files):
    """Build a consistent snapshot from ``{"cat: sig": {origin: n}}``."""
    snap = Snapshot()
    for raw_key, per_origin in files.items():
        key = EventKey.from_storage(raw_key)
        snap.files[key] = dict(per_origin)
        snap.counts[key] = sum(per_origin.values())
    return snap


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep the outer environment from switching counting on or moving the store."""
    monkeypatch.delenv(ENABLE_ENV_VAR, raising=False)
    monkeypatch.delenv(AGGREGATE_PATH_ENV_VAR, raising=False)


@pytest.fixture
def store(tmp_path):
    return AggregateStore(tmp_path / "aggregate.json")


@pytest.fixture
def payment_snapshot():
    """Two categories, error dominating, spread over two test files."""
    return make_snapshot({
        "error: Payment gateway timeout": {"tests/test_checkout.py": 2, "tests/test_refund.py": 1},
        "warn: Retrying payment": {"tests/test_checkout.py": 1},
    })


@pytest.fixture
def wide_snapshot():
    """Seven origins for one error, enough to trigger the detailed report."""
    return make_snapshot({
        "error: Database connection lost": {
            "api/test_orders.py": 9,
            "api/test_users.py": 7,
            "api/test_cart.py": 6,
            "jobs/test_sync.py": 5,
            "jobs/test_email.py": 4,
            "jobs/test_cleanup.py": 2,
            "cli/test_main.py": 1,
        },
        "warning: Cache miss for key": {"api/test_orders.py": 3, "api/test_cart.py": 1},
        "info: Request handled": {"api/test_users.py": 12},
    })
