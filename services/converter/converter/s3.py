"""
AWS S3 access for the converter — streams objects into scratch files and
publishes converted files back.

Flow per unit:
  1. ``download`` streams the source object into its local scratch path.
  2. The encoder writes the converted file next to it.
  3. ``upload`` streams the converted file under the target key through the
     managed transfer, with an explicit ContentType.

``botocore``, ``aiohttp`` transport and local I/O errors are translated into
``StorageReadError`` / ``StorageWriteError`` with the original exception
chained.
"""
from __future__ import annotations

import logging

import aioboto3
import aiofiles
import aiohttp
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from converter.config import Settings
from converter.exceptions import StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)


def _s3_session(settings: Settings) -> aioboto3.Session:
    if not settings.aws_access_key_id:
        return aioboto3.Session(region_name=settings.aws_region)
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


class S3Storage:
    """Object storage backed by S3. One instance per invocation."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._session = _s3_session(settings)

    def _client(self):
        if self._settings.s3_endpoint_url:
            return self._session.client("s3", endpoint_url=self._settings.s3_endpoint_url)
        return self._session.client("s3")

    async def download(self, bucket: str, key: str, path: str) -> None:
        """Stream ``s3://bucket/key`` into the local file at ``path``."""
        logger.info("Downloading s3://%s/%s to %s", bucket, key, path)
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=bucket, Key=key)
                async with response["Body"] as stream, aiofiles.open(path, "wb") as out:
                    while chunk := await stream.read(self._settings.download_chunk_size):
                        await out.write(chunk)
        except (BotoCoreError, ClientError, aiohttp.ClientError, OSError) as exc:
            logger.error("S3 get_object failed for s3://%s/%s: %s", bucket, key, exc)
            raise StorageReadError(bucket, key) from exc

    async def upload(self, bucket: str, key: str, path: str, content_type: str) -> None:
        """Stream the local file at ``path`` to ``s3://bucket/key``."""
        logger.info("Uploading %s to s3://%s/%s", path, bucket, key)
        try:
            async with aiofiles.open(path, "rb") as src, self._client() as s3:
                await s3.upload_fileobj(
                    src,
                    bucket,
                    key,
                    ExtraArgs={"ContentType": content_type},
                )
        except (
            BotoCoreError,
            ClientError,
            S3UploadFailedError,
            aiohttp.ClientError,
            OSError,
        ) as exc:
            logger.error("S3 upload failed for s3://%s/%s: %s", bucket, key, exc)
            raise StorageWriteError(bucket, key) from exc
