"""
Batch orchestrator — converts every eligible object of one invocation.

Flow:
  1. Start a fresh trace and record the raw notification records.
  2. Keep the records whose key ends in the source suffix and build units.
  3. Run every unit pipeline concurrently and wait for all of them to settle.
  4. Finalize the trace exactly once, log it as one JSON line and return a
     ``BatchOutcome`` carrying the record on both the success and failure arm.

Unit failures are recorded by their own pipeline and never abort the batch.
Anything raised by the orchestrator's own steps (malformed records, trace
errors) is caught once, recorded at error, and the batch still finalizes.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from converter.config import Settings
from converter.constants import TraceLevel
from converter.encoder import FfmpegEncoder
from converter.pipeline import Encoder, ObjectStorage, UnitOutcome, run_unit_pipeline
from converter.s3 import S3Storage
from converter.trace import TraceRecord, TraceState, error_details
from converter.units import ConversionUnit, select_units
from shared.events.schemas import S3EventRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Result of one invocation. ``record`` is present whether or not it failed."""

    level: TraceLevel
    record: TraceRecord
    units: tuple[UnitOutcome, ...] = ()

    @property
    def ok(self) -> bool:
        return self.level is not TraceLevel.ERROR

    @property
    def payload(self) -> dict[str, Any]:
        return self.record.to_dict()


class BatchConverter:
    def __init__(
        self,
        settings: Settings,
        *,
        storage: ObjectStorage | None = None,
        encoder: Encoder | None = None,
        trace: TraceState | None = None,
    ) -> None:
        self.settings = settings
        self.storage = storage if storage is not None else S3Storage(settings)
        self.encoder = encoder if encoder is not None else FfmpegEncoder(settings.ffmpeg_path)
        self.trace = trace if trace is not None else TraceState()

    def select(self, records: Sequence[Mapping[str, Any]]) -> list[ConversionUnit]:
        """Parse notification records and keep the convertible ones."""
        parsed = [S3EventRecord.model_validate(record) for record in records]
        return select_units(parsed, self.settings)

    async def process(self, units: Sequence[ConversionUnit]) -> list[UnitOutcome]:
        """Run all unit pipelines concurrently and collect every outcome."""
        results = await asyncio.gather(
            *(
                run_unit_pipeline(
                    unit,
                    self.trace,
                    self.storage,
                    self.encoder,
                    self.settings.target_content_type,
                )
                for unit in units
            ),
            return_exceptions=True,
        )
        outcomes: list[UnitOutcome] = []
        for unit, result in zip(units, results):
            if isinstance(result, Exception):
                logger.error("Pipeline for s3://%s/%s raised: %s", unit.bucket, unit.source_key, result)
                message, aux = error_details(result)
                self.trace.error(message, aux=aux)
                failed = UnitOutcome(unit)
                failed.fail(result)
                outcomes.append(failed)
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)
        return outcomes

    async def handle(self, records: Sequence[Mapping[str, Any]]) -> BatchOutcome:
        outcomes: list[UnitOutcome] = []
        try:
            self.trace.init()
            self.trace.info("S3 records", records)
            units = self.trace.info("S3 objects to process", self.select(records))
            outcomes = await self.process(units)
        except Exception as exc:
            logger.exception("Batch processing failed")
            message, aux = error_details(exc)
            try:
                self.trace.error(message, aux=aux)
            except Exception:
                logger.exception("Could not record batch failure")

        level, record = self.trace.finalize()
        logger.log(level.logging_level, json.dumps(record.to_dict(), default=str))
        return BatchOutcome(level=level, record=record, units=tuple(outcomes))

    async def handle_with_callback(
        self,
        records: Sequence[Mapping[str, Any]],
        callback: Callable[..., Any],
    ) -> BatchOutcome:
        """Report through a single Node-style callback.

        Failure: ``callback(record)``. Success: ``callback(None, record)``.
        """
        outcome = await self.handle(records)
        if outcome.ok:
            callback(None, outcome.payload)
        else:
            callback(outcome.payload)
        return outcome
