"""Tests for sinks."""

import logging
import uuid
from datetime import datetime
from typing import Any
from unittest.mock import patch

import pytest
from clickhouse_driver import errors

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
from ffv_gen.generators import BiometricGenerator
from ffv_gen.models import NIL_IMAGE_ID, ControlObject
from ffv_gen.sinks.clickhouse import BulkInsert, ClickHouseSink, control_object_row, ffv_row
from ffv_gen.sinks.console import ConsoleSink
from ffv_gen.sinks.serialization import serialize_value, to_dict


class TestRowConversion:
    """Tests for record to row conversion."""

    def test_control_object_row(self, generator: BiometricGenerator) -> None:
        """Test column order and native UUID type."""
        cob = generator.generate_control_object(datetime(2024, 5, 6))
        row = control_object_row(cob)

        assert len(row) == len(ClickHouseSink.TABLE_COLUMNS["control_objects"])
        assert row[0] == uuid.UUID(cob.id)
        assert row[1] == datetime(2024, 5, 6)
        assert row[2] == cob.passport
        assert row[3:] == ("-",) * 8

    def test_ffv_row(self, generator: BiometricGenerator) -> None:
        """Test identifiers become UUIDs and arrays keep their width."""
        cob = generator.generate_control_object()
        ffv = generator.generate_ffv(cob)
        row = ffv_row(ffv)

        assert row[0] == uuid.UUID(ffv.id)
        assert row[1] == uuid.UUID(cob.id)
        assert row[2] == uuid.UUID(NIL_IMAGE_ID)
        assert row[3] == ffv.face_box
        assert row[4] == ffv.feature_vector

    def test_ffv_row_rejects_out_of_range_face_box(self, generator: BiometricGenerator) -> None:
        """Test a face box value beyond UInt64 fails conversion."""
        ffv = generator.generate_ffv(generator.generate_control_object())
        ffv.face_box[0] = 2**64

        with pytest.raises(ValueError):
            ffv_row(ffv)

    def test_bad_uuid(self) -> None:
        """Test an invalid identifier fails conversion."""
        cob = ControlObject(id="not-a-uuid", created_at=datetime.now(), passport="12 34 567890")

        with pytest.raises(ValueError):
            control_object_row(cob)


class TestBulkInsert:
    """Tests for the begin / prepare / execute / commit sequence."""

    COLUMNS = ClickHouseSink.TABLE_COLUMNS["control_objects"]

    def _tx(self, client: Any) -> BulkInsert:
        return BulkInsert(client, "control_objects", self.COLUMNS, control_object_row)

    def test_commit_sends_one_insert(
        self, fake_client: Any, generator: BiometricGenerator
    ) -> None:
        """Test all rows reach the store in a single insert."""
        cobs, _ = generator.generate_batch(4)

        with self._tx(fake_client) as tx:
            tx.prepare(ClickHouseSink.insert_query("control_objects"))
            for i, cob in enumerate(cobs, start=1):
                tx.execute(i, cob)
            assert fake_client.inserts == []
            assert tx.commit() == 4

        assert fake_client.connection.connects == 1
        assert len(fake_client.inserts) == 1
        query, rows = fake_client.inserts[0]
        assert query == ClickHouseSink.insert_query("control_objects")
        assert [row[0] for row in rows] == [uuid.UUID(c.id) for c in cobs]

    def test_begin_failed(self, fake_client: Any) -> None:
        """Test a connection failure on begin."""
        fake_client.connection.connect_error = errors.NetworkError("connection refused")

        with pytest.raises(BeginFailed) as exc_info:
            with self._tx(fake_client):
                pass

        assert exc_info.value.table == "control_objects"
        assert isinstance(exc_info.value.__cause__, errors.NetworkError)

    @pytest.mark.parametrize(
        "statement",
        [
            "SELECT 1",
            "INSERT INTO facial_features (id, cob_id, img_id, fb, ff) VALUES",
            "INSERT INTO control_objects (id, ts) VALUES",
        ],
    )
    def test_prepare_failed(self, fake_client: Any, statement: str) -> None:
        """Test statements that do not match the table are rejected."""
        with self._tx(fake_client) as tx:
            with pytest.raises(PrepareFailed):
                tx.prepare(statement)

    def test_prepare_accepts_multiline_statement(self, fake_client: Any) -> None:
        """Test whitespace and a trailing semicolon are tolerated."""
        statement = """
            INSERT INTO
                control_objects
                (id, ts, passport,
                 surname, name, patronymic,
                 sex, birthdate,
                 phone_num, email, address)
            VALUES;
        """
        with self._tx(fake_client) as tx:
            tx.prepare(statement)

    def test_execute_failed_reports_row(
        self, fake_client: Any, generator: BiometricGenerator
    ) -> None:
        """Test a bad row aborts the batch with its index."""
        cobs, _ = generator.generate_batch(4)
        cobs[1].id = "broken"

        with pytest.raises(ExecuteFailed) as exc_info:
            with self._tx(fake_client) as tx:
                tx.prepare(ClickHouseSink.insert_query("control_objects"))
                for i, cob in enumerate(cobs, start=1):
                    tx.execute(i, cob)
                tx.commit()

        assert exc_info.value.row_index == 2
        assert "row 2" in str(exc_info.value)
        assert fake_client.inserts == []

    def test_execute_requires_prepare(
        self, fake_client: Any, generator: BiometricGenerator
    ) -> None:
        """Test executing before prepare fails."""
        with self._tx(fake_client) as tx:
            with pytest.raises(ExecuteFailed):
                tx.execute(1, generator.generate_control_object())

    def test_commit_failed(self, fake_client: Any, generator: BiometricGenerator) -> None:
        """Test a server error on commit."""
        fake_client.insert_error = errors.ServerException("Table default.control_objects doesn't exist", 60)

        with pytest.raises(CommitFailed) as exc_info:
            with self._tx(fake_client) as tx:
                tx.prepare(ClickHouseSink.insert_query("control_objects"))
                tx.execute(1, generator.generate_control_object())
                tx.commit()

        assert isinstance(exc_info.value.__cause__, errors.ServerException)

    def test_buffer_released_on_exit(
        self, fake_client: Any, generator: BiometricGenerator
    ) -> None:
        """Test rows are dropped when the block exits without commit."""
        tx = self._tx(fake_client)
        with pytest.raises(RuntimeError):
            with tx:
                tx.prepare(ClickHouseSink.insert_query("control_objects"))
                tx.execute(1, generator.generate_control_object())
                raise RuntimeError("interrupted")

        assert tx._rows == []
        assert tx._statement is None

    def test_empty_commit(self, fake_client: Any) -> None:
        """Test committing nothing sends nothing."""
        with self._tx(fake_client) as tx:
            tx.prepare(ClickHouseSink.insert_query("control_objects"))
            assert tx.commit() == 0

        assert fake_client.inserts == []


class TestClickHouseSink:
    """Tests for ClickHouseSink."""

    def test_insert_queries(self) -> None:
        """Test statements cover the table columns."""
        assert ClickHouseSink.insert_query("facial_features") == (
            "INSERT INTO facial_features (id, cob_id, img_id, fb, ff) VALUES"
        )
        assert ClickHouseSink.ENTITY_ORDER == ["control_objects", "facial_features"]

    def test_create_client_from_url(self, storage_config: ClickHouseConfig) -> None:
        """Test the client is built from the connection string."""
        with patch("ffv_gen.sinks.clickhouse.Client.from_url") as from_url:
            sink = ClickHouseSink(storage_config)

        from_url.assert_called_once_with(storage_config.connection_string)
        assert sink.client is from_url.return_value

    def test_create_client_failure(self, storage_config: ClickHouseConfig) -> None:
        """Test a bad connection URL raises StoreConnectionError."""
        with patch(
            "ffv_gen.sinks.clickhouse.Client.from_url",
            side_effect=ValueError("bad url"),
        ):
            with pytest.raises(StoreConnectionError) as exc_info:
                ClickHouseSink(storage_config)

        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_write_batches(
        self,
        storage_config: ClickHouseConfig,
        fake_client: Any,
        generator: BiometricGenerator,
    ) -> None:
        """Test writing both entity types."""
        sink = ClickHouseSink(storage_config, client=fake_client)
        cobs, ffvs = generator.generate_batch(3)

        assert sink.write_control_objects(cobs) == 3
        assert sink.write_feature_vectors(ffvs) == 3

        assert fake_client.batch_sizes("control_objects") == [3]
        assert fake_client.batch_sizes("facial_features") == [3]
        assert sink._counts == {"control_objects": 3, "facial_features": 3}

    def test_bad_second_row_reports_row_two(
        self,
        storage_config: ClickHouseConfig,
        fake_client: Any,
        generator: BiometricGenerator,
    ) -> None:
        """Test row positions are counted from 1."""
        sink = ClickHouseSink(storage_config, client=fake_client)
        cobs, _ = generator.generate_batch(3)
        cobs[1].id = "bad"

        with pytest.raises(ExecuteFailed) as exc_info:
            sink.write_control_objects(cobs)

        assert exc_info.value.row_index == 2
        assert "row 2 of bulk insert into control_objects" in str(exc_info.value)
        assert fake_client.inserts == []

    def test_unknown_entity_type(
        self, storage_config: ClickHouseConfig, fake_client: Any
    ) -> None:
        """Test writing an unknown entity type."""
        sink = ClickHouseSink(storage_config, client=fake_client)

        with pytest.raises(SinkError, match="Unknown entity type"):
            sink.write_batch("customers", [])

    def test_close_disconnects(
        self, storage_config: ClickHouseConfig, fake_client: Any
    ) -> None:
        """Test the context manager disconnects on exit."""
        with ClickHouseSink(storage_config, client=fake_client):
            pass

        assert fake_client.disconnected is True


class TestPing:
    """Tests for the liveness probe."""

    def test_first_attempt(self, storage_config: ClickHouseConfig, fake_client: Any) -> None:
        """Test success on the first probe."""
        sink = ClickHouseSink(storage_config, client=fake_client)

        assert sink.ping() == 1
        assert fake_client.pings == 1

    def test_retries_until_success(
        self,
        storage_config: ClickHouseConfig,
        fake_client: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test failed probes are logged and retried."""
        fake_client.ping_errors = [
            errors.NetworkError("connection refused"),
            errors.ServerException("Authentication failed\nStack trace:\n0. DB::Exception", 516),
        ]
        sink = ClickHouseSink(storage_config, client=fake_client)

        with caplog.at_level(logging.WARNING, logger="ffv_gen"):
            assert sink.ping(3) == 3

        assert fake_client.pings == 3
        assert "for 1 time" in caplog.text
        assert "[516]" in caplog.text
        assert "Stack trace" in caplog.text

    def test_unreachable(self, storage_config: ClickHouseConfig, fake_client: Any) -> None:
        """Test exhausting every attempt raises UnreachableError."""
        fake_client.ping_errors = [errors.NetworkError("down") for _ in range(5)]
        sink = ClickHouseSink(storage_config, client=fake_client)

        with pytest.raises(UnreachableError) as exc_info:
            sink.ping(4)

        assert exc_info.value.attempts == 4
        assert fake_client.pings == 4
        assert isinstance(exc_info.value.__cause__, errors.NetworkError)

    def test_defaults_to_configured_attempts(self, fake_client: Any) -> None:
        """Test max_pings from config is used when no count is given."""
        fake_client.ping_errors = [OSError("refused") for _ in range(5)]
        sink = ClickHouseSink(ClickHouseConfig(max_pings=2), client=fake_client)

        with pytest.raises(UnreachableError):
            sink.ping()

        assert fake_client.pings == 2

    def test_invalid_attempts(self, storage_config: ClickHouseConfig, fake_client: Any) -> None:
        """Test zero attempts is a configuration error."""
        sink = ClickHouseSink(storage_config, client=fake_client)

        with pytest.raises(ConfigurationError):
            sink.ping(0)


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_write_batch(
        self, capsys: pytest.CaptureFixture, generator: BiometricGenerator
    ) -> None:
        """Test writing a batch prints a header and limited records."""
        sink = ConsoleSink(max_records=2)
        cobs, _ = generator.generate_batch(5)

        assert sink.write_control_objects(cobs) == 5
        captured = capsys.readouterr()

        assert "control_objects (5 records)" in captured.out
        assert cobs[0].id in captured.out
        assert cobs[4].id not in captured.out
        assert "and 3 more records" in captured.out

    def test_close_prints_summary(
        self, capsys: pytest.CaptureFixture, generator: BiometricGenerator
    ) -> None:
        """Test counts accumulate across batches."""
        _, ffvs = generator.generate_batch(2)

        with ConsoleSink(max_records=0) as sink:
            sink.write_feature_vectors(ffvs)
            sink.write_feature_vectors(ffvs)

        captured = capsys.readouterr()
        assert "facial_features: 4 records" in captured.out


class TestSerialization:
    """Tests for shared serialization utilities."""

    def test_to_dict_dataclass(self, generator: BiometricGenerator) -> None:
        now = datetime(2024, 1, 1, 12, 0, 0)
        cob = generator.generate_control_object(now)
        result = to_dict(cob)

        assert result["id"] == cob.id
        assert result["created_at"] == "2024-01-01T12:00:00"

    def test_to_dict_passthrough(self) -> None:
        d = {"key": "value"}
        assert to_dict(d) is d

    def test_to_dict_other(self) -> None:
        assert to_dict(42) == {"value": "42"}

    def test_serialize_nested(self) -> None:
        value = {"ids": (uuid.UUID(NIL_IMAGE_ID),), "box": [1, 2]}
        assert serialize_value(value) == {"ids": [NIL_IMAGE_ID], "box": [1, 2]}
