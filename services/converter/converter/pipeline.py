"""
Per-unit conversion pipeline.

  PENDING → DOWNLOADED → CONVERTED → UPLOADED → CLEANED_UP
     ╰──────────╰───────────╰───────────╰──→ FAILED

Each stage is preceded by an ``info`` trace entry. A failing stage is recorded
at ``error`` and skips the remaining transfer stages, but scratch files are
removed on every path. ``run_unit_pipeline`` never raises: one unit's failure
must not reach its siblings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from converter.constants import UnitStage
from converter.exceptions import CleanupError
from converter.trace import TraceState, error_details
from converter.units import ConversionUnit

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def download(self, bucket: str, key: str, path: str) -> None: ...

    async def upload(self, bucket: str, key: str, path: str, content_type: str) -> None: ...


class Encoder(Protocol):
    async def convert(self, source_path: str, target_path: str) -> None: ...


@dataclass(slots=True)
class UnitOutcome:
    unit: ConversionUnit
    stage: UnitStage = UnitStage.PENDING
    failed_after: UnitStage | None = None
    error: Exception | None = None
    cleanup_error: CleanupError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.stage is UnitStage.CLEANED_UP

    def fail(self, exc: Exception) -> None:
        if self.error is not None:
            return
        self.failed_after = self.stage
        self.stage = UnitStage.FAILED
        self.error = exc


# ── Stages ───────────────────────────────────────────────────────────────────

async def download(unit: ConversionUnit, storage: ObjectStorage) -> ConversionUnit:
    await storage.download(unit.bucket, unit.source_key, unit.local_source_path)
    return unit


async def convert(unit: ConversionUnit, encoder: Encoder) -> ConversionUnit:
    await encoder.convert(unit.local_source_path, unit.local_target_path)
    return unit


async def upload(unit: ConversionUnit, storage: ObjectStorage, content_type: str) -> ConversionUnit:
    await storage.upload(unit.bucket, unit.target_key, unit.local_target_path, content_type)
    return unit


async def cleanup(unit: ConversionUnit) -> CleanupError | None:
    """Remove the unit's scratch files, returning the failure instead of raising it."""
    try:
        await unit.remove_files()
    except CleanupError as exc:
        return exc
    return None


# ── Runner ───────────────────────────────────────────────────────────────────

def _record(trace: TraceState, unit: ConversionUnit, level: str, exc: Exception) -> None:
    message, aux = error_details(exc)
    try:
        trace.record(level, message, aux=aux)
    except Exception:
        logger.exception("Could not record %s for s3://%s/%s", message, unit.bucket, unit.source_key)


async def run_unit_pipeline(
    unit: ConversionUnit,
    trace: TraceState,
    storage: ObjectStorage,
    encoder: Encoder,
    content_type: str,
) -> UnitOutcome:
    """Download, convert, upload and clean up one unit."""
    outcome = UnitOutcome(unit)
    try:
        trace.info("Starting download", unit, aux={"object": unit, "path": unit.local_source_path})
        await download(unit, storage)
        outcome.stage = UnitStage.DOWNLOADED

        trace.info("Converting object", unit)
        await convert(unit, encoder)
        outcome.stage = UnitStage.CONVERTED

        trace.info("Uploading converted object", unit)
        await upload(unit, storage, content_type)
        outcome.stage = UnitStage.UPLOADED
    except Exception as exc:
        logger.warning("Conversion of s3://%s/%s failed: %s", unit.bucket, unit.source_key, exc)
        outcome.fail(exc)
        _record(trace, unit, "error", exc)

    try:
        trace.info("Removing object files", unit)
    except Exception as exc:
        outcome.fail(exc)
        _record(trace, unit, "error", exc)

    outcome.cleanup_error = await cleanup(unit)
    if outcome.cleanup_error is not None:
        _record(trace, unit, "warn", outcome.cleanup_error)
    else:
        try:
            trace.debug("Object files removed", unit)
        except Exception as exc:
            outcome.fail(exc)
            _record(trace, unit, "error", exc)

    if outcome.stage is UnitStage.UPLOADED:
        outcome.stage = UnitStage.CLEANED_UP
    return outcome
