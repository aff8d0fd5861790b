"""Console sink for dry runs and debugging."""

import json
from typing import Any

from ffv_gen.models import ControlObject, FacialFeaturesVector
from ffv_gen.sinks.serialization import to_dict


class ConsoleSink:
    """Output batches to console (stdout) instead of ClickHouse."""

    def __init__(self, pretty: bool = False, max_records: int | None = 3) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        max_records : int | None
            Maximum records to print per batch (None for all).
        """
        self.pretty = pretty
        self.max_records = max_records
        self._counts: dict[str, int] = {}

    def write_batch(self, entity_type: str, records: list[Any]) -> int:
        """Write a batch of records to console."""
        print(f"\n{'='*60}")
        print(f"Entity: {entity_type} ({len(records)} records)")
        print("=" * 60)

        display_records = records[: self.max_records] if self.max_records is not None else records

        for record in display_records:
            data = to_dict(record)
            if self.pretty:
                print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
            else:
                print(json.dumps(data, ensure_ascii=False, default=str))

        if self.max_records is not None and len(records) > self.max_records:
            print(f"... and {len(records) - self.max_records} more records")

        self._counts[entity_type] = self._counts.get(entity_type, 0) + len(records)
        return len(records)

    def write_control_objects(self, cobs: list[ControlObject]) -> int:
        """Print a batch of control objects."""
        return self.write_batch("control_objects", cobs)

    def write_feature_vectors(self, ffvs: list[FacialFeaturesVector]) -> int:
        """Print a batch of facial features vectors."""
        return self.write_batch("facial_features", ffvs)

    def close(self) -> None:
        """Print summary and close."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for entity_type, count in self._counts.items():
            print(f"  {entity_type}: {count} records")

    def __enter__(self) -> "ConsoleSink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
