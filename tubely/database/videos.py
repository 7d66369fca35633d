import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import PyMongoError

from tubely.database.schemas.video import VideoRecord

logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"


class DatastoreError(Exception):
    pass


class VideoRepository:
    """Reads and writes VideoRecord documents in the `videos` collection."""

    def __init__(self, collection):
        self.collection = collection

    async def get_video(self, video_id: str) -> Optional[VideoRecord]:
        try:
            doc = await self.collection.find_one({"_id": video_id})
        except PyMongoError as e:
            raise DatastoreError(f"Failed to fetch video {video_id}") from e

        if doc is None:
            return None
        return VideoRecord.model_validate(doc)

    async def update_video(self, video: VideoRecord) -> None:
        """
        Replace the stored document with `video` in full.

        Raises:
            DatastoreError: If the write fails or the video no longer exists
        """
        video.updated_at = datetime.now(timezone.utc)
        try:
            result = await self.collection.replace_one({"_id": video.id}, video.to_document())
        except PyMongoError as e:
            raise DatastoreError(f"Failed to update video {video.id}") from e

        if result.matched_count == 0:
            raise DatastoreError(f"No video found for id={video.id}")

        logger.info("Video updated | id=%s", video.id)


def get_video_repository(db) -> VideoRepository:
    return VideoRepository(db[VIDEOS_COLLECTION])
