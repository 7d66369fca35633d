import asyncio
import logging
from typing import Sequence, Tuple

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when an external media command fails to run to a clean exit."""

    def __init__(self, message: str, returncode: int = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
        await process.wait()


async def run_command(command: Sequence[str], timeout: float) -> Tuple[bytes, bytes]:
    """
    Run an external command to completion and collect its output.

    The child is killed if it outlives `timeout` seconds or if the calling
    task is cancelled.

    Args:
        command: Program and arguments
        timeout: Seconds to wait before giving up

    Returns:
        (stdout, stderr) as raw bytes

    Raises:
        CommandError: If the program cannot be started, times out or exits non-zero
    """
    logger.debug("Running: %s", " ".join(command))

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(f"{command[0]} could not be started: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        await _kill(process)
        raise CommandError(f"{command[0]} timed out after {timeout}s") from e
    except asyncio.CancelledError:
        await _kill(process)
        raise

    if process.returncode != 0:
        error_msg = stderr.decode("utf-8", errors="ignore").strip()
        raise CommandError(
            f"{command[0]} exited with status {process.returncode}: {error_msg[:500]}",
            returncode=process.returncode,
            stderr=error_msg,
        )

    return stdout, stderr
