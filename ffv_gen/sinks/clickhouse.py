"""ClickHouse sink: connection, liveness probe and transactional batch inserts."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Callable

from clickhouse_driver import Client, errors

from ffv_gen.config import ClickHouseConfig
from ffv_gen.exceptions import (
    BeginFailed,
    CommitFailed,
    ConfigurationError,
    ExecuteFailed,
    PrepareFailed,
    SinkError,
    StoreConnectionError,
    UnreachableError,
)
from ffv_gen.models import ControlObject, FacialFeaturesVector

logger = logging.getLogger(__name__)

UINT64_MAX = 2**64 - 1

PING_QUERY = "SELECT 1"

_INSERT_RE = re.compile(
    r"^\s*INSERT\s+INTO\s+(?P<table>\w+)\s*\((?P<columns>[^)]*)\)\s*VALUES\s*;?\s*$",
    re.IGNORECASE,
)

# Driver-level failures: server errors, network errors and raw socket errors
DRIVER_ERRORS = (errors.Error, OSError, EOFError)


def _uuid(value: str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(value)


def _uint64_array(values: list[int]) -> list[int]:
    result = [int(v) for v in values]
    for v in result:
        if not 0 <= v <= UINT64_MAX:
            raise ValueError(f"{v} is out of UInt64 range")
    return result


def control_object_row(cob: ControlObject) -> tuple:
    """Convert a control object into a ``control_objects`` row."""
    return (
        _uuid(cob.id),
        cob.created_at,
        cob.passport,
        cob.surname,
        cob.name,
        cob.patronymic,
        cob.sex,
        cob.birth_date,
        cob.phone_number,
        cob.email,
        cob.address,
    )


def ffv_row(ffv: FacialFeaturesVector) -> tuple:
    """Convert a facial features vector into a ``facial_features`` row."""
    return (
        _uuid(ffv.id),
        _uuid(ffv.control_object_id),
        _uuid(ffv.image_id),
        _uint64_array(ffv.face_box),
        [float(v) for v in ffv.feature_vector],
    )


class BulkInsert:
    """One bulk insert transaction into a single table.

    Mirrors the begin / prepare / execute / commit sequence of a SQL
    transaction. Rows are buffered by ``execute`` and sent as one block on
    ``commit``, so nothing reaches the table unless every row converted.
    Used as a context manager; the buffer is released on exit either way::

        with BulkInsert(client, "facial_features", columns, ffv_row) as tx:
            tx.prepare(INSERT_QUERIES["facial_features"])
            for i, ffv in enumerate(ffvs):
                tx.execute(i, ffv)
            tx.commit()
    """

    def __init__(
        self,
        client: Client,
        table: str,
        columns: list[str],
        to_row: Callable[[Any], tuple],
    ) -> None:
        self.client = client
        self.table = table
        self.columns = columns
        self.to_row = to_row
        self._statement: str | None = None
        self._rows: list[tuple] = []

    def __enter__(self) -> "BulkInsert":
        self.begin()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._statement = None
        self._rows = []

    def begin(self) -> None:
        """Acquire a live connection for the transaction."""
        try:
            self.client.connection.force_connect()
        except DRIVER_ERRORS as exc:
            raise BeginFailed(f"unable to begin bulk insert into {self.table}", self.table) from exc
        self._rows = []

    def prepare(self, statement: str) -> None:
        """Check an ``INSERT INTO table (cols) VALUES`` statement against the table."""
        match = _INSERT_RE.match(statement)
        if match is None:
            raise PrepareFailed(
                f"unable to prepare SQL-statement for {self.table}: not an INSERT ... VALUES statement",
                self.table,
            )

        columns = [c.strip() for c in match.group("columns").split(",")]
        if match.group("table") != self.table or columns != self.columns:
            raise PrepareFailed(
                f"unable to prepare SQL-statement for {self.table}: "
                f"statement targets {match.group('table')}({', '.join(columns)})",
                self.table,
            )

        self._statement = statement.strip().rstrip(";")

    def execute(self, row_index: int, record: Any) -> None:
        """Convert ``record`` and add it to the transaction.

        ``row_index`` is the 1-based position of the record in the batch.
        """
        if self._statement is None:
            raise ExecuteFailed(
                f"unable to execute row {row_index} of bulk insert into {self.table}: "
                "statement is not prepared",
                self.table,
                row_index,
            )
        try:
            row = self.to_row(record)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ExecuteFailed(
                f"unable to execute row {row_index} of bulk insert into {self.table}",
                self.table,
                row_index,
            ) from exc
        self._rows.append(row)

    def commit(self) -> int:
        """Send every buffered row in one insert. Returns the row count."""
        count = len(self._rows)
        if count:
            try:
                self.client.execute(self._statement, self._rows, types_check=True)
            except DRIVER_ERRORS as exc:
                raise CommitFailed(f"unable to commit bulk insert into {self.table}", self.table) from exc
        self._rows = []
        return count


class ClickHouseSink:
    """Output data to ClickHouse over the native protocol."""

    TABLE_COLUMNS: dict[str, list[str]] = {
        "control_objects": [
            "id",
            "ts",
            "passport",
            "surname",
            "name",
            "patronymic",
            "sex",
            "birthdate",
            "phone_num",
            "email",
            "address",
        ],
        "facial_features": ["id", "cob_id", "img_id", "fb", "ff"],
    }

    # Control objects go first, facial features reference them
    ENTITY_ORDER = ["control_objects", "facial_features"]

    ROW_CONVERTERS: dict[str, Callable[[Any], tuple]] = {
        "control_objects": control_object_row,
        "facial_features": ffv_row,
    }

    def __init__(self, config: ClickHouseConfig, client: Client | None = None) -> None:
        """Initialize ClickHouse sink.

        Parameters
        ----------
        config : ClickHouseConfig
            Storage configuration.
        client : Client | None
            Ready-made driver client. Built from ``config`` when omitted.
        """
        self.config = config
        self.client = client if client is not None else self._create_client()
        self._counts: dict[str, int] = {}

    def _create_client(self) -> Client:
        """Create the driver client from the configured connection string."""
        logger.info(
            "Connecting to ClickHouse at %s:%d/%s (read_timeout=%ds, write_timeout=%ds)",
            self.config.addr,
            self.config.port,
            self.config.default_db,
            self.config.read_timeout,
            self.config.write_timeout,
        )
        try:
            return Client.from_url(self.config.connection_string)
        except (ValueError, errors.Error) as exc:
            raise StoreConnectionError(
                f"unable to connect to ClickHouse at {self.config.addr}:{self.config.port}"
            ) from exc

    @staticmethod
    def insert_query(table: str) -> str:
        """Build the INSERT statement for a known table."""
        columns = ", ".join(ClickHouseSink.TABLE_COLUMNS[table])
        return f"INSERT INTO {table} ({columns}) VALUES"

    def ping(self, max_attempts: int | None = None) -> int:
        """Probe the store until it answers.

        Parameters
        ----------
        max_attempts : int | None
            Number of probes to try; defaults to ``config.max_pings``.

        Returns
        -------
        int
            The attempt number that succeeded.

        Raises
        ------
        UnreachableError
            If every attempt failed.
        """
        attempts = self.config.max_pings if max_attempts is None else max_attempts
        if attempts < 1:
            raise ConfigurationError(f"max ping attempts must be >= 1, got {attempts}")

        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                self.client.execute(PING_QUERY)
            except errors.ServerException as exc:
                last_error = exc
                logger.warning(
                    "ClickHouse DB exception on ping %d/%d: [%s] %s",
                    attempt,
                    attempts,
                    exc.code,
                    exc.message,
                )
            except DRIVER_ERRORS as exc:
                last_error = exc
                logger.warning("Unable to ping ClickHouse DB for %d time: %s", attempt, exc)
            else:
                logger.info("ClickHouse DB is reachable (ping %d/%d)", attempt, attempts)
                return attempt

        raise UnreachableError(attempts) from last_error

    def write_batch(self, entity_type: str, records: list[Any]) -> int:
        """Write a batch of records to a ClickHouse table in one transaction."""
        if entity_type not in self.TABLE_COLUMNS:
            raise SinkError(f"Unknown entity type: {entity_type}")

        with BulkInsert(
            self.client,
            entity_type,
            self.TABLE_COLUMNS[entity_type],
            self.ROW_CONVERTERS[entity_type],
        ) as tx:
            tx.prepare(self.insert_query(entity_type))
            for i, record in enumerate(records, start=1):
                tx.execute(i, record)
            count = tx.commit()

        self._counts[entity_type] = self._counts.get(entity_type, 0) + count
        logger.debug("Inserted %d rows into %s", count, entity_type)
        return count

    def write_control_objects(self, cobs: list[ControlObject]) -> int:
        """Insert a batch of control objects."""
        return self.write_batch("control_objects", cobs)

    def write_feature_vectors(self, ffvs: list[FacialFeaturesVector]) -> int:
        """Insert a batch of facial features vectors."""
        return self.write_batch("facial_features", ffvs)

    def close(self) -> None:
        """Disconnect from ClickHouse."""
        self.client.disconnect()
        logger.info(
            "ClickHouse sink closed: %s",
            ", ".join(f"{table}={count}" for table, count in self._counts.items()) or "no rows",
        )

    def __enter__(self) -> "ClickHouseSink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
