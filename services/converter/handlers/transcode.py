"""
AWS Lambda handler — MOV → MP4 conversion

Triggered by:
  1. S3 ObjectCreated event (a video lands in the upload bucket)
  2. SQS message wrapping an S3 event

Flow:
  1. Collects the S3 records from the event (unwrapping SQS bodies).
  2. Converts every ``.mov`` object to ``.mp4`` with ffmpeg (codec copy).
  3. Uploads the result next to the source object.
  4. Returns the invocation trace, or raises ``BatchFailed`` carrying the same
     trace when any record failed.

Environment variables:
  SOURCE_SUFFIX / TARGET_SUFFIX — formats handled (default .mov → .mp4)
  TARGET_CONTENT_TYPE           — ContentType of uploaded objects
  FFMPEG_PATH                   — encoder binary (e.g. /opt/bin/ffmpeg from a layer)
  SCRATCH_DIR                   — local scratch root (default /tmp)
  LOG_LEVEL                     — root log level (default INFO)
  AWS_REGION                    — AWS region (set by Lambda runtime)
"""
from __future__ import annotations

import asyncio
import json
import logging

from converter.config import get_settings
from converter.exceptions import BatchFailed
from converter.orchestrator import BatchConverter

logger = logging.getLogger()
logger.setLevel(get_settings().log_level)


def handler(event: dict, context: object) -> dict:
    """Lambda entry point — converts the objects named by S3 or SQS events."""
    records = unwrap_records(event)
    converter = BatchConverter(get_settings())
    outcome = asyncio.run(converter.handle(records))
    if not outcome.ok:
        raise BatchFailed(outcome.payload)
    return outcome.payload


def unwrap_records(event: dict) -> list[dict]:
    """Flatten direct S3 records and SQS-wrapped S3 events into one list."""
    s3_records: list[dict] = []
    for record in event.get("Records", []):
        if not isinstance(record, dict) or record.get("eventSource") != "aws:sqs":
            s3_records.append(record)
            continue
        try:
            body = json.loads(record.get("body", "{}"))
        except (TypeError, json.JSONDecodeError):
            body = None
        if not isinstance(body, dict):
            # Left in place so the batch records it as a malformed notification.
            logger.error("SQS message %s has no JSON object body", record.get("messageId"))
            s3_records.append(record)
            continue
        s3_records.extend(body.get("Records", []))
    return s3_records
