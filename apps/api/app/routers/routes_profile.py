from fastapi import APIRouter, Depends

from reco_core.errors import NotFound
from reco_store.base import RecoStore
from reco_user.patterns.schemas import BehavioralProfile

from app.deps.deps import get_store

router = APIRouter(prefix="/v2/users", tags=["profile"])


@router.get("/{user_id}/behavioral-profile", response_model=BehavioralProfile)
async def get_behavioral_profile(
    user_id: str,
    store: RecoStore = Depends(get_store),
):
    profile = await store.get_behavioral_profile(user_id)
    if profile is None:
        raise NotFound(f"No behavioral profile for user {user_id}")
    return profile
