import json
import logging
from enum import Enum

from tubely.media.process import CommandError, run_command

logger = logging.getLogger(__name__)


class AspectClass(str, Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


class ProbeError(Exception):
    pass


class NoStreamsError(ProbeError):
    pass


def classify_aspect_ratio(ratio) -> AspectClass:
    if ratio == "16:9":
        return AspectClass.LANDSCAPE
    if ratio == "9:16":
        return AspectClass.PORTRAIT
    return AspectClass.OTHER


def parse_probe_output(raw: bytes) -> AspectClass:
    """
    Classify the first stream of `ffprobe -print_format json -show_streams` output.

    Raises:
        ProbeError: If the output is not a JSON object
        NoStreamsError: If no streams were reported
    """
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise ProbeError(f"ffprobe output is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProbeError("ffprobe output is not a JSON object")

    streams = data.get("streams")
    if not isinstance(streams, list) or not streams:
        raise NoStreamsError("ffprobe reported no streams")

    first = streams[0]
    ratio = first.get("display_aspect_ratio") if isinstance(first, dict) else None
    return classify_aspect_ratio(ratio)


class MediaProbe:
    """Classifies a local video file by display aspect ratio using ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 300.0):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    async def probe(self, path: str) -> AspectClass:
        # ---------- FFprobe command ----------
        # -v error      → only print real errors on stderr
        # -print_format → JSON on stdout
        # -show_streams → one entry per stream
        command = [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        try:
            stdout, _ = await run_command(command, timeout=self.timeout)
        except CommandError as e:
            raise ProbeError(f"ffprobe failed: {e}") from e

        aspect = parse_probe_output(stdout)
        logger.info("Probed %s as %s", path, aspect.value)
        return aspect
