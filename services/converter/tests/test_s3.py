from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from converter.config import Settings
from converter.exceptions import StorageReadError, StorageWriteError
from converter.s3 import S3Storage


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.reads: list[int] = []

    async def __aenter__(self) -> "_FakeBody":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    async def read(self, amt: int = -1) -> bytes:
        self.reads.append(amt)
        chunk, self._data = self._data[:amt], self._data[amt:]
        return chunk


class _FakeClient:
    def __init__(self) -> None:
        self.get_object = AsyncMock()
        self.put_object = AsyncMock()
        self.upload_fileobj = AsyncMock(side_effect=self._drain)
        self.uploaded: list[bytes] = []
        self.read_sizes: list[int] = []

    async def _drain(self, fileobj, bucket, key, ExtraArgs=None) -> None:
        while chunk := await fileobj.read(4):
            self.read_sizes.append(len(chunk))
            self.uploaded.append(chunk)

    async def __aenter__(self) -> "_FakeClient":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def client() -> _FakeClient:
    return _FakeClient()


@pytest.fixture
def s3_storage(client: _FakeClient, scratch: Path) -> S3Storage:
    settings = Settings(scratch_dir=str(scratch), download_chunk_size=4)
    session = MagicMock()
    session.client.return_value = client
    with patch("converter.s3._s3_session", return_value=session):
        yield S3Storage(settings)


@pytest.mark.asyncio
async def test_download_streams_body_to_file(s3_storage, client, scratch) -> None:
    body = _FakeBody(b"0123456789")
    client.get_object.return_value = {"Body": body}
    path = scratch / "clip.mov"

    await s3_storage.download("test", "uploads/clip.mov", str(path))

    client.get_object.assert_awaited_once_with(Bucket="test", Key="uploads/clip.mov")
    assert path.read_bytes() == b"0123456789"
    assert body.reads == [4, 4, 4, 4]


@pytest.mark.asyncio
async def test_download_client_error_becomes_storage_read_error(s3_storage, client, scratch) -> None:
    client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

    with pytest.raises(StorageReadError) as exc_info:
        await s3_storage.download("test", "missing.mov", str(scratch / "missing.mov"))

    assert exc_info.value.key == "missing.mov"
    assert isinstance(exc_info.value.__cause__, ClientError)


@pytest.mark.asyncio
async def test_download_local_write_error(s3_storage, client, scratch) -> None:
    client.get_object.return_value = {"Body": _FakeBody(b"data")}

    with pytest.raises(StorageReadError):
        await s3_storage.download("test", "clip.mov", str(scratch / "no-such-dir" / "clip.mov"))


@pytest.mark.asyncio
async def test_upload_streams_file_with_content_type(s3_storage, client, scratch) -> None:
    path = scratch / "clip.mp4"
    path.write_bytes(b"mp4-bytes")

    await s3_storage.upload("test", "uploads/clip.mp4", str(path), "video/mp4")

    client.put_object.assert_not_awaited()
    client.upload_fileobj.assert_awaited_once()
    fileobj, bucket, key = client.upload_fileobj.await_args.args
    assert (bucket, key) == ("test", "uploads/clip.mp4")
    assert client.upload_fileobj.await_args.kwargs == {"ExtraArgs": {"ContentType": "video/mp4"}}
    assert not isinstance(fileobj, (bytes, bytearray))
    assert b"".join(client.uploaded) == b"mp4-bytes"
    assert client.read_sizes == [4, 4, 1]


@pytest.mark.asyncio
async def test_upload_connection_error_becomes_storage_write_error(s3_storage, client, scratch) -> None:
    path = scratch / "clip.mp4"
    path.write_bytes(b"mp4-bytes")
    client.upload_fileobj.side_effect = EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")

    with pytest.raises(StorageWriteError) as exc_info:
        await s3_storage.upload("test", "clip.mp4", str(path), "video/mp4")

    assert exc_info.value.bucket == "test"


@pytest.mark.asyncio
async def test_upload_missing_local_file(s3_storage, client, scratch) -> None:
    with pytest.raises(StorageWriteError):
        await s3_storage.upload("test", "clip.mp4", str(scratch / "clip.mp4"), "video/mp4")
    client.upload_fileobj.assert_not_awaited()


def test_custom_endpoint_is_passed_to_client(scratch) -> None:
    settings = Settings(scratch_dir=str(scratch), s3_endpoint_url="http://localhost:4566")
    session = MagicMock()
    with patch("converter.s3._s3_session", return_value=session):
        S3Storage(settings)._client()
    session.client.assert_called_once_with("s3", endpoint_url="http://localhost:4566")


@pytest.mark.asyncio
async def test_download_truncated_body_becomes_storage_read_error(s3_storage, client, scratch) -> None:
    body = _FakeBody(b"data")
    body.read = AsyncMock(side_effect=aiohttp.ClientPayloadError("Response payload is not completed"))
    client.get_object.return_value = {"Body": body}

    with pytest.raises(StorageReadError) as exc_info:
        await s3_storage.download("test", "clip.mov", str(scratch / "clip.mov"))

    assert isinstance(exc_info.value.__cause__, aiohttp.ClientPayloadError)
