"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from ffv_gen.config import ClickHouseConfig
from ffv_gen.generators import BiometricGenerator


class FakeConnection:
    """Stand-in for the driver's native connection."""

    def __init__(self) -> None:
        self.connect_error: Exception | None = None
        self.connects = 0

    def force_connect(self) -> None:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error


class FakeClient:
    """Records queries the way ``clickhouse_driver.Client`` would receive them."""

    def __init__(self) -> None:
        self.connection = FakeConnection()
        self.ping_errors: list[Exception] = []
        self.insert_error: Exception | None = None
        self.pings = 0
        self.inserts: list[tuple[str, list[tuple]]] = []
        self.disconnected = False

    def execute(self, query: str, params: Any = None, types_check: bool = False) -> Any:
        if query == "SELECT 1":
            self.pings += 1
            if self.ping_errors:
                raise self.ping_errors.pop(0)
            return [(1,)]
        if self.insert_error is not None:
            raise self.insert_error
        self.inserts.append((query, list(params)))
        return len(params)

    def disconnect(self) -> None:
        self.disconnected = True

    def rows_for(self, table: str) -> list[tuple]:
        """All rows inserted into ``table``."""
        return [
            row
            for query, rows in self.inserts
            if query.startswith(f"INSERT INTO {table} ")
            for row in rows
        ]

    def batch_sizes(self, table: str) -> list[int]:
        """Row count of every insert into ``table``, in order."""
        return [
            len(rows) for query, rows in self.inserts if query.startswith(f"INSERT INTO {table} ")
        ]


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def generator(seed: int) -> BiometricGenerator:
    """Placeholder-mode generator with a fixed seed."""
    return BiometricGenerator(seed=seed)


@pytest.fixture
def fake_client() -> FakeClient:
    """Fake ClickHouse driver client."""
    return FakeClient()


@pytest.fixture
def storage_config() -> ClickHouseConfig:
    """Storage config pointing at a local server."""
    return ClickHouseConfig(addr="localhost", port=9000, max_pings=3)
