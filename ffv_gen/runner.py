"""Run controller: drives generation and batched writes to completion."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ffv_gen.config import FFVGenConfig
from ffv_gen.exceptions import ConfigurationError, FFVGenError, WriteError
from ffv_gen.generators import BiometricGenerator
from ffv_gen.sinks import ClickHouseSink, ConsoleSink

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of a loader run."""

    CONNECTING = "CONNECTING"
    PROBING = "PROBING"
    UNREACHABLE = "UNREACHABLE"
    READY = "READY"
    WRITING = "WRITING"
    FAILED = "FAILED"
    COMPLETED = "COMPLETED"


@dataclass
class RunSummary:
    """Outcome of a completed run."""

    total: int
    batch_size: int
    batches: int
    elapsed_seconds: float
    dry_run: bool = False

    def describe(self) -> str:
        """Human-readable one-line summary."""
        verb = "dry run: generated" if self.dry_run else "inserted"
        return (
            f"{verb} {self.total} ({self.batch_size} in req) pairs "
            f"(ControlObject x FacialFeaturesVector) in {self.elapsed_seconds:.3f}s"
        )


def plan_batches(total: int, batch_size: int) -> list[int]:
    """Split ``total`` records into full batches plus one remainder batch.

    Parameters
    ----------
    total : int
        Number of records to write (>= 0).
    batch_size : int
        Records per batch (> 0).

    Returns
    -------
    list[int]
        Batch sizes, e.g. ``plan_batches(10, 3) == [3, 3, 3, 1]``.
    """
    if batch_size <= 0:
        raise ConfigurationError(f"batch size must be > 0, got {batch_size}")
    if total < 0:
        raise ConfigurationError(f"total record count must be >= 0, got {total}")

    full_batches, remainder = divmod(total, batch_size)
    sizes = [batch_size] * full_batches
    if remainder:
        sizes.append(remainder)
    return sizes


def open_sink(config: FFVGenConfig, dry_run: bool = False, max_records: int | None = 3) -> Any:
    """Open the output sink and make sure it is reachable.

    The ClickHouse sink is closed again if the probe fails.
    """
    if dry_run:
        logger.info("Dry run: writing batches to console")
        return ConsoleSink(max_records=max_records)

    logger.info("State: %s", RunState.CONNECTING.value)
    sink = ClickHouseSink(config.storage)

    logger.info("State: %s", RunState.PROBING.value)
    try:
        sink.ping(config.storage.max_pings)
    except FFVGenError:
        logger.error("State: %s", RunState.UNREACHABLE.value)
        sink.close()
        raise

    logger.info("State: %s", RunState.READY.value)
    return sink


def run(
    sink: Any,
    generator: BiometricGenerator,
    total: int,
    batch_size: int,
    started_at: float | None = None,
) -> RunSummary:
    """Generate and write ``total`` control object / FFV pairs.

    For each batch the control objects are generated and written, then one
    facial features vector per control object. The first write error aborts
    the run; no later batch is attempted.

    Parameters
    ----------
    sink : ClickHouseSink | ConsoleSink
        Destination exposing ``write_control_objects`` and
        ``write_feature_vectors``.
    generator : BiometricGenerator
        Record generator.
    total : int
        Number of pairs to write.
    batch_size : int
        Pairs per transaction.
    started_at : float | None
        ``time.monotonic()`` at process start; elapsed time is measured
        from here. Defaults to the start of this call.

    Returns
    -------
    RunSummary
        Counts and elapsed time.

    Raises
    ------
    WriteError
        If any batch write fails.
    """
    if started_at is None:
        started_at = time.monotonic()

    sizes = plan_batches(total, batch_size)
    logger.info(
        "State: %s (%d pairs in %d batches of up to %d)",
        RunState.WRITING.value,
        total,
        len(sizes),
        batch_size,
    )

    for index, size in enumerate(sizes, start=1):
        cobs = generator.generate_control_objects(size)
        try:
            sink.write_control_objects(cobs)
        except WriteError as exc:
            logger.error(
                "State: %s: unable to insert generated control objects: %s",
                RunState.FAILED.value,
                exc,
            )
            raise

        ffvs = generator.generate_ffvs(cobs)
        try:
            sink.write_feature_vectors(ffvs)
        except WriteError as exc:
            logger.error(
                "State: %s: unable to insert generated facial features vectors: %s",
                RunState.FAILED.value,
                exc,
            )
            raise

        logger.debug("Batch %d/%d written (%d pairs)", index, len(sizes), size)

    summary = RunSummary(
        total=total,
        batch_size=batch_size,
        batches=len(sizes),
        elapsed_seconds=time.monotonic() - started_at,
        dry_run=isinstance(sink, ConsoleSink),
    )
    logger.info("State: %s", RunState.COMPLETED.value)
    return summary
