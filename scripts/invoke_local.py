#!/usr/bin/env python3
"""
Run the MOV → MP4 Lambda handler locally against an S3 event file.

Reads AWS credentials and converter settings from .env (see
services/converter/converter/config.py). ffmpeg must be on PATH or set via
FFMPEG_PATH.

Usage:
    cd <repo root>
    python -m scripts.invoke_local services/converter/tests/fixtures/event.json
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Put the service and shared roots on the path so imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "services" / "converter"))
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "shared"))

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")

from converter.exceptions import BatchFailed
from handlers.transcode import handler


def main() -> None:
    if len(sys.argv) != 2:
        print("Usage: python -m scripts.invoke_local <event.json>")
        sys.exit(2)

    event = json.loads(Path(sys.argv[1]).read_text(encoding="utf-8"))
    try:
        result = handler(event, None)
    except BatchFailed as exc:
        print(json.dumps(exc.record, indent=2, default=str))
        sys.exit(1)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
