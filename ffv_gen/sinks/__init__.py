"""Output sinks for generated batches."""

from ffv_gen.sinks.clickhouse import BulkInsert, ClickHouseSink
from ffv_gen.sinks.console import ConsoleSink

__all__ = ["BulkInsert", "ClickHouseSink", "ConsoleSink"]
