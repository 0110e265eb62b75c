"""
ffmpeg invocation — remux a source file into the target container.

The codec streams are copied as-is (``-c copy``); only the container changes,
so conversion is fast and lossless. ``-y`` overwrites a leftover target file
from a previous invocation that reused the same scratch directory.
"""
from __future__ import annotations

import asyncio
import logging

from converter.exceptions import EncoderError

logger = logging.getLogger(__name__)

# Characters of ffmpeg stderr kept in EncoderError
_STDERR_TAIL = 500


def build_args(source_path: str, target_path: str) -> list[str]:
    return ["-i", source_path, "-c", "copy", "-y", target_path]


class FfmpegEncoder:
    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        self.ffmpeg_path = ffmpeg_path

    async def convert(self, source_path: str, target_path: str) -> None:
        """Run ffmpeg; raises ``EncoderError`` unless it exits with status 0."""
        args = build_args(source_path, target_path)
        logger.info("Running %s %s", self.ffmpeg_path, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise EncoderError(None, str(exc)) from exc

        _, stderr = await process.communicate()
        if process.returncode != 0:
            tail = (stderr or b"").decode("utf-8", errors="replace")[-_STDERR_TAIL:]
            logger.error("ffmpeg exited with %s for %s", process.returncode, source_path)
            raise EncoderError(process.returncode, tail.strip())
