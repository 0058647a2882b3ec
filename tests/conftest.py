import os

import pytest

os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TELEMETRY_PATH", ":memory:")

from intraop.core.lifecycle import IntraopRecordService  # noqa: E402
from intraop.core.store import DuckDBRecordStore  # noqa: E402
from intraop.core.telemetry import TelemetryStore  # noqa: E402


@pytest.fixture
def store():
    record_store = DuckDBRecordStore(":memory:")
    record_store.add_case("case-1")
    yield record_store
    record_store.close()


@pytest.fixture
def telemetry():
    telemetry_store = TelemetryStore(":memory:")
    yield telemetry_store
    telemetry_store.close()


@pytest.fixture
def service(store, telemetry):
    return IntraopRecordService(store, telemetry=telemetry)
