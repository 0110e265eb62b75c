"""
Converter service — domain-specific exceptions.

Every exception builds its own message from the values passed in, so call
sites never format error text themselves. Unit-scoped errors are caught by the
pipeline and recorded in the invocation trace; ``BatchFailed`` is the one
raised to the Lambda runtime.
"""
from __future__ import annotations

import json
from typing import Any


class ConversionError(Exception):
    """Base class for every error raised by the conversion pipeline."""


# ── Storage ──────────────────────────────────────────────────────────────────

class StorageReadError(ConversionError):
    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Could not download s3://{bucket}/{key}.")


class StorageWriteError(ConversionError):
    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Could not upload s3://{bucket}/{key}.")


# ── Encoder ──────────────────────────────────────────────────────────────────

class EncoderError(ConversionError):
    def __init__(self, returncode: int | None, stderr: str = "") -> None:
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else "."
        if returncode is None:
            super().__init__(f"Encoder could not be started{detail}")
        else:
            super().__init__(f"Encoder exited with status {returncode}{detail}")


# ── Local files ──────────────────────────────────────────────────────────────

class CleanupError(ConversionError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Could not remove local file {path}.")


# ── Invocation ───────────────────────────────────────────────────────────────

class BatchFailed(ConversionError):
    """Raised by the Lambda handler when the invocation severity is ``error``.

    Carries the full trace record so the failure payload matches the success
    payload shape.
    """

    def __init__(self, record: dict[str, Any]) -> None:
        self.record = record
        super().__init__(json.dumps(record, default=str))
