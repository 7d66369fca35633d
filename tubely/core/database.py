import logging

from motor.motor_asyncio import AsyncIOMotorClient

from .config import Settings

logger = logging.getLogger(__name__)


class MongoDB:
    def __init__(self):
        self.client: AsyncIOMotorClient = None
        self.db = None

    async def connect(self, settings: Settings) -> None:
        self.client = AsyncIOMotorClient(settings.MONGO_URI)
        self.db = self.client[settings.MONGO_DB]
        logger.info("Connected to MongoDB: %s", settings.MONGO_DB)

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed")
