from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from tubely.services.upload_pipeline import UploadPipeline

router = APIRouter()


def get_upload_pipeline(request: Request) -> UploadPipeline:
    state = request.app.state
    return UploadPipeline(
        settings=state.settings,
        videos=state.video_repository,
        storage=state.storage,
        probe=state.media_probe,
        remuxer=state.remuxer,
    )


@router.post("/{video_id}")
async def upload_video(
    video_id: str,
    request: Request,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
):
    # The body is read by the pipeline itself, after ownership is checked
    video = await pipeline.run(video_id, request)
    return JSONResponse(status_code=status.HTTP_200_OK, content=video.model_dump(mode="json"))
