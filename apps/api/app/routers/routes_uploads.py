from fastapi import APIRouter, Depends

from reco_user.upload_service import UploadService, UploadSummary

from app.deps.deps import get_upload_service
from app.schemas import UploadRequest

router = APIRouter(prefix="/v2/users", tags=["uploads"])


@router.post("/{user_id}/interactions/upload", response_model=UploadSummary)
async def upload_interactions(
    user_id: str,
    req: UploadRequest,
    service: UploadService = Depends(get_upload_service),
):
    """Ingest a parsed interaction log; rebuilds the profile and the user embedding."""
    return await service.upload(user_id, req.rows)
