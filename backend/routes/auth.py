"""Authentication API routes."""

from fastapi import APIRouter, Depends

from backend.auth import require_auth
from backend.sessions import get_studio

router = APIRouter()


@router.get("/auth/me")
async def me(session: dict = Depends(require_auth)):
    """Return the account behind the current token."""
    studio = get_studio(session["account_id"])
    return {"account_id": session["account_id"], "credits": studio.balance}
