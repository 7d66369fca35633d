from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from tubely.core.config import Settings, load_settings
from tubely.core.database import MongoDB
from tubely.core.errors import APIError, api_error_handler
from tubely.core.logger import setup_logging
from tubely.database.videos import get_video_repository
from tubely.media.probe import MediaProbe
from tubely.media.remux import FastStartRemuxer
from tubely.storage.s3 import get_s3_storage
from tubely.api.routes_videos import router as videos_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(title="Tubely")
    app.state.settings = settings
    app.state.mongodb = MongoDB()
    app.state.media_probe = MediaProbe(settings.FFPROBE_PATH, timeout=settings.MEDIA_TIMEOUT_SECONDS)
    app.state.remuxer = FastStartRemuxer(settings.FFMPEG_PATH, timeout=settings.MEDIA_TIMEOUT_SECONDS)

    @app.on_event("startup")
    async def startup_event():
        settings.validate()
        await app.state.mongodb.connect(settings)
        app.state.video_repository = get_video_repository(app.state.mongodb.db)
        app.state.storage = get_s3_storage(settings)
        logger.info("Tubely started | bucket=%s | region=%s", settings.AWS_S3_BUCKET, settings.AWS_REGION)

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.mongodb.close()

    app.add_exception_handler(APIError, api_error_handler)
    app.include_router(videos_router, prefix="/videos", tags=["videos"])

    # Allow CORS (for frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Replace with your frontend URL in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": "Tubely is running"}

    return app


settings = load_settings()
setup_logging(settings.LOG_LEVEL)
app = create_app(settings)

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
