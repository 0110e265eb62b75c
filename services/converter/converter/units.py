"""
Conversion units — one source → target job per eligible S3 notification.

A unit knows its storage keys and the scratch files it downloads to and
encodes into. Local files are named by the final segment of the storage key,
so two keys ending in the same file name would collide within one batch.
"""
from __future__ import annotations

import logging
import os
import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass

import aiofiles.os

from converter.config import Settings
from converter.exceptions import CleanupError
from shared.events.schemas import S3EventRecord

logger = logging.getLogger(__name__)


def decode_key(key: str) -> str:
    """Decode an S3 notification key (percent-escapes, ``+`` for space)."""
    return urllib.parse.unquote_plus(key)


def is_eligible(key: str, source_suffix: str) -> bool:
    """Case-sensitive suffix match on the decoded key."""
    return decode_key(key).endswith(source_suffix)


def replace_suffix(key: str, source_suffix: str, target_suffix: str) -> str:
    if not key.endswith(source_suffix):
        return key
    return key[: len(key) - len(source_suffix)] + target_suffix


def local_path(scratch_dir: str, key: str) -> str:
    """Scratch path for ``key``: its final path segment under ``scratch_dir``."""
    return os.path.join(scratch_dir, key.rsplit("/", 1)[-1])


@dataclass(frozen=True, slots=True)
class ConversionUnit:
    bucket: str
    source_key: str
    target_key: str
    local_source_path: str
    local_target_path: str

    @classmethod
    def build(
        cls,
        bucket: str,
        raw_key: str,
        *,
        scratch_dir: str,
        source_suffix: str,
        target_suffix: str,
    ) -> ConversionUnit:
        source_key = decode_key(raw_key)
        target_key = replace_suffix(source_key, source_suffix, target_suffix)
        return cls(
            bucket=bucket,
            source_key=source_key,
            target_key=target_key,
            local_source_path=local_path(scratch_dir, source_key),
            local_target_path=local_path(scratch_dir, target_key),
        )

    @classmethod
    def from_record(cls, record: S3EventRecord, settings: Settings) -> ConversionUnit:
        return cls.build(
            record.bucket_name,
            record.raw_key,
            scratch_dir=settings.scratch_dir,
            source_suffix=settings.source_suffix,
            target_suffix=settings.target_suffix,
        )

    @property
    def local_paths(self) -> tuple[str, str]:
        return self.local_source_path, self.local_target_path

    async def remove_files(self) -> None:
        """Delete both scratch files. Missing files are fine.

        Both deletions are always attempted; the first failure is raised
        afterwards as ``CleanupError``.
        """
        failure: CleanupError | None = None
        for path in self.local_paths:
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove %s: %s", path, exc)
                if failure is None:
                    failure = CleanupError(path)
                    failure.__cause__ = exc
        if failure is not None:
            raise failure


def select_units(records: Iterable[S3EventRecord], settings: Settings) -> list[ConversionUnit]:
    """Build a unit for every record whose key carries the source suffix."""
    return [
        ConversionUnit.from_record(record, settings)
        for record in records
        if is_eligible(record.raw_key, settings.source_suffix)
    ]
