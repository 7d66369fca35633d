import asyncio
import logging
import os

from tubely.media.process import CommandError, run_command

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = ".processing"


class RemuxError(Exception):
    pass


def _remove_if_exists(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class FastStartRemuxer:
    """
    Rewrites an MP4 so its moov atom sits before the media data.

    Streams are copied, never re-encoded. The output lands next to the
    input and belongs to the caller.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 300.0):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    async def remux(self, path: str) -> str:
        output_path = path + OUTPUT_SUFFIX

        # ---------- FFmpeg command ----------
        # -c copy             → copy every stream as-is
        # -movflags faststart → relocate moov atom to the front
        # -f mp4              → output container (suffix is not .mp4)
        # -y                  → overwrite output if exists
        command = [
            self.ffmpeg_path,
            "-i", path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            "-y",
            output_path,
        ]

        try:
            await run_command(command, timeout=self.timeout)
        except CommandError as e:
            _remove_if_exists(output_path)
            raise RemuxError(f"ffmpeg failed: {e}") from e
        except asyncio.CancelledError:
            _remove_if_exists(output_path)
            raise

        if not os.path.isfile(output_path):
            raise RemuxError(f"Remux output not found: {output_path}")

        logger.info("Remuxed %s for fast start", path)
        return output_path
