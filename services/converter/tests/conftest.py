"""Shared fixtures: in-memory S3 and ffmpeg stand-ins writing to a tmp scratch dir."""
from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from converter.config import Settings
from converter.exceptions import EncoderError, StorageReadError, StorageWriteError
from converter.trace import TraceState

FIXTURES = Path(__file__).parent / "fixtures"


class FakeStorage:
    """Records calls; fails for the keys it is told to fail on."""

    def __init__(
        self,
        *,
        fail_download: set[str] | None = None,
        fail_upload: set[str] | None = None,
    ) -> None:
        self.fail_download = fail_download or set()
        self.fail_upload = fail_upload or set()
        self.downloads: list[tuple[str, str, str]] = []
        self.uploads: list[tuple[str, str, str, str]] = []

    async def download(self, bucket: str, key: str, path: str) -> None:
        self.downloads.append((bucket, key, path))
        if key in self.fail_download:
            raise StorageReadError(bucket, key)
        Path(path).write_bytes(b"mov-bytes")

    async def upload(self, bucket: str, key: str, path: str, content_type: str) -> None:
        self.uploads.append((bucket, key, path, content_type))
        if key in self.fail_upload:
            raise StorageWriteError(bucket, key)
        assert Path(path).read_bytes() == b"mov-bytes"


class FakeEncoder:
    """Copies source to target unless the source path is listed in ``fail_on``."""

    def __init__(self, *, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, str]] = []

    async def convert(self, source_path: str, target_path: str) -> None:
        self.calls.append((source_path, target_path))
        if source_path in self.fail_on:
            raise EncoderError(1, "Invalid data found when processing input")
        Path(target_path).write_bytes(Path(source_path).read_bytes())


@pytest.fixture
def scratch(tmp_path: Path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def settings(scratch: Path) -> Settings:
    return Settings(scratch_dir=str(scratch), ffmpeg_path="ffmpeg")


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def trace() -> TraceState:
    return TraceState().init()


@pytest.fixture
def make_record() -> Callable[..., dict]:
    def _make(key: str, bucket: str = "test") -> dict:
        return {
            "eventSource": "aws:s3",
            "eventName": "ObjectCreated:Put",
            "s3": {"bucket": {"name": bucket}, "object": {"key": key}},
        }

    return _make


@pytest.fixture
def s3_event() -> dict:
    return json.loads((FIXTURES / "event.json").read_text(encoding="utf-8"))
