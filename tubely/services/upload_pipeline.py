import logging
import os
import shutil
import tempfile
import uuid
from contextlib import AsyncExitStack
from enum import Enum
from typing import AsyncIterator, BinaryIO, Callable, Dict, Mapping, Tuple

from fastapi import Request
from python_multipart.multipart import parse_options_header
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from tubely.core.config import Settings
from tubely.core.errors import APIError, BadRequest, Forbidden, Internal, Unauthenticated
from tubely.core.security import AuthError, get_bearer_token, validate_token
from tubely.database.schemas.video import VideoRecord
from tubely.database.videos import DatastoreError
from tubely.media.probe import AspectClass, ProbeError
from tubely.media.remux import RemuxError
from tubely.storage.s3 import StorageError
from tubely.utils.keys import EntropyError, generate_object_key

logger = logging.getLogger(__name__)

VIDEO_FIELD = "video"
ALLOWED_MEDIA_TYPE = "video/mp4"
STAGED_PREFIX = "tubely-upload"
COPY_CHUNK_SIZE = 1024 * 1024


class PipelineState(str, Enum):
    AUTHENTICATING = "authenticating"
    AUTHORIZING = "authorizing"
    INGESTING = "ingesting"
    PROBING = "probing"
    REMUXING = "remuxing"
    KEY_DERIVING = "key_deriving"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class UploadTooLarge(Exception):
    pass


def parse_media_type(value: str) -> Tuple[str, Dict[str, str]]:
    """
    Split a Content-Type value into a lowercased media type and its parameters.

    Raises:
        ValueError: If the value is not `type/subtype[; k=v ...]`
    """
    raw_type, raw_params = parse_options_header(value)
    media_type = raw_type.decode("latin-1").lower()
    kind, sep, subtype = media_type.partition("/")
    if not sep or not kind or not subtype or "/" in subtype or " " in media_type:
        raise ValueError(f"invalid media type: {value!r}")

    params = {
        name.decode("latin-1"): param_value.decode("latin-1")
        for name, param_value in raw_params.items()
    }
    return media_type, params


async def limit_stream(stream: AsyncIterator[bytes], max_bytes: int) -> AsyncIterator[bytes]:
    """Pass chunks through, raising UploadTooLarge once more than max_bytes went by."""
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if received > max_bytes:
            raise UploadTooLarge(f"request body exceeds {max_bytes} bytes")
        yield chunk


def _copy_upload(src: BinaryIO, dst: BinaryIO) -> None:
    src.seek(0)
    shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Failed to remove temp file %s", path)


class UploadPipeline:
    """
    Takes one video upload from an HTTP request to a stored object and an
    updated VideoRecord.

    Every temp file and handle is registered on an exit stack as soon as it
    exists, so all of them are gone by the time `run` returns or raises.
    """

    def __init__(
        self,
        settings: Settings,
        videos,
        storage,
        probe,
        remuxer,
        key_generator: Callable[[AspectClass], str] = generate_object_key,
    ):
        self.settings = settings
        self.videos = videos
        self.storage = storage
        self.probe = probe
        self.remuxer = remuxer
        self.key_generator = key_generator

        self.state = PipelineState.AUTHENTICATING
        self.failed_at = None

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Upload pipeline: %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self) -> None:
        logger.debug("Upload pipeline: %s -> %s", self.state.value, PipelineState.FAILED.value)
        self.failed_at = self.state
        self.state = PipelineState.FAILED

    async def run(self, video_id: str, request: Request) -> VideoRecord:
        try:
            async with AsyncExitStack() as stack:
                return await self._run(video_id, request, stack)
        except APIError:
            self._fail()
            raise
        except Exception as e:
            self._fail()
            raise Internal("Something went wrong", e) from e

    async def _run(self, video_id: str, request: Request, stack: AsyncExitStack) -> VideoRecord:
        try:
            video_id = str(uuid.UUID(video_id))
        except ValueError as e:
            raise BadRequest("Invalid ID", e) from e

        token = self._authenticate(request.headers)

        self._enter(PipelineState.AUTHORIZING)
        video = await self._authorize(video_id, token)

        self._enter(PipelineState.INGESTING)
        media_type, staged_path = await self._ingest(request, stack)

        self._enter(PipelineState.PROBING)
        try:
            aspect = await self.probe.probe(staged_path)
        except ProbeError as e:
            raise Internal("Could not get ratio", e) from e

        self._enter(PipelineState.REMUXING)
        body = await self._remux(staged_path, stack)

        self._enter(PipelineState.KEY_DERIVING)
        try:
            key = self.key_generator(aspect)
        except EntropyError as e:
            raise Internal("Could not generate object key", e) from e

        self._enter(PipelineState.UPLOADING)
        bucket = self.settings.AWS_S3_BUCKET
        try:
            await run_in_threadpool(self.storage.put, bucket, key, media_type, body)
        except StorageError as e:
            raise Internal("Could not upload object", e) from e

        self._enter(PipelineState.PERSISTING)
        video.video_url = self.storage.object_url(bucket, key)
        try:
            await self.videos.update_video(video)
        except DatastoreError as e:
            raise Internal("Couldn't update video", e) from e

        self._enter(PipelineState.DONE)
        logger.info("Video uploaded | id=%s | key=%s", video.id, key)
        return video

    def _authenticate(self, headers: Mapping[str, str]) -> str:
        try:
            return get_bearer_token(headers)
        except AuthError as e:
            raise Unauthenticated("Couldn't find JWT", e) from e

    async def _authorize(self, video_id: str, token: str) -> VideoRecord:
        try:
            user_id = validate_token(token, self.settings.JWT_SECRET)
        except AuthError as e:
            raise Unauthenticated("Couldn't validate JWT", e) from e

        try:
            video = await self.videos.get_video(video_id)
        except DatastoreError as e:
            raise Internal("Couldn't find video", e) from e
        if video is None:
            raise Internal("Couldn't find video")

        if video.user_id != user_id:
            raise Forbidden("Not authorized to update this video")
        return video

    async def _ingest(self, request: Request, stack: AsyncExitStack) -> Tuple[str, str]:
        max_bytes = self.settings.MAX_UPLOAD_BYTES

        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError as e:
                raise BadRequest("Invalid Content-Length", e) from e
            if declared > max_bytes:
                raise BadRequest("File too large")

        try:
            form_type, form_params = parse_media_type(request.headers.get("content-type", ""))
        except ValueError as e:
            raise BadRequest("Unable to parse form file", e) from e
        if form_type != "multipart/form-data" or not form_params.get("boundary"):
            raise BadRequest("Unable to parse form file")

        parser = MultiPartParser(
            request.headers,
            limit_stream(request.stream(), max_bytes),
            max_files=1,
        )
        try:
            form = await parser.parse()
        except UploadTooLarge as e:
            raise BadRequest("File too large", e) from e
        except MultiPartException as e:
            raise BadRequest("Unable to parse form file", e) from e
        stack.push_async_callback(form.close)

        upload = form.get(VIDEO_FIELD)
        if not isinstance(upload, UploadFile):
            raise BadRequest("Unable to parse form file")

        try:
            media_type, _ = parse_media_type(upload.content_type or "")
        except ValueError as e:
            raise BadRequest("Invalid Content-Type", e) from e
        if media_type != ALLOWED_MEDIA_TYPE:
            raise BadRequest("Invalid file type")

        try:
            fd, staged_path = tempfile.mkstemp(
                prefix=STAGED_PREFIX, suffix=".mp4", dir=self.settings.UPLOAD_TMP_DIR
            )
        except OSError as e:
            raise Internal("Unable to create temp file on server", e) from e
        stack.callback(_remove_file, staged_path)

        try:
            with os.fdopen(fd, "wb") as dst:
                await run_in_threadpool(_copy_upload, upload.file, dst)
        except OSError as e:
            raise Internal("Error saving temp file", e) from e

        return media_type, staged_path

    async def _remux(self, staged_path: str, stack: AsyncExitStack) -> BinaryIO:
        try:
            processed_path = await self.remuxer.remux(staged_path)
        except RemuxError as e:
            raise Internal("Couldn't convert video", e) from e
        stack.callback(_remove_file, processed_path)

        try:
            body = stack.enter_context(open(processed_path, "rb"))
        except OSError as e:
            raise Internal("Couldn't find converted video", e) from e
        body.seek(0)
        return body
