"""
User profile metadata. Not involved in timing; kept alongside the sessions API.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from worktimer.db import get_session
from worktimer.routers.sessions import require_user_id
from worktimer.store import ProfileStore

router = APIRouter(prefix="/api", tags=["profile"])


class ProfileRequest(BaseModel):
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    unsubscribed: Optional[bool] = None


@router.get("/profile")
def get_profile(
    db: Session = Depends(get_session),
    uid: str = Depends(require_user_id),
):
    return ProfileStore(db).get(uid)


@router.put("/profile")
def put_profile(
    req: ProfileRequest,
    db: Session = Depends(get_session),
    uid: str = Depends(require_user_id),
):
    """Create or update this user's profile. Only fields sent in the body change."""
    fields = {
        name: getattr(req, name)
        for name in req.model_fields_set
        if not (name == "unsubscribed" and req.unsubscribed is None)
    }
    return ProfileStore(db).upsert(uid, fields)
