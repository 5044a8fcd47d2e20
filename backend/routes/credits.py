"""Credit balance and history routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend.auth import require_auth
from backend.sessions import get_studio
from seoimg.schemas.models import CreditTransaction

router = APIRouter()


class BalanceResponse(BaseModel):
    account_id: str
    credits: int
    costs: dict[str, int]


@router.get("/credits", response_model=BalanceResponse)
async def balance(session: dict = Depends(require_auth)):
    studio = get_studio(session["account_id"])
    return BalanceResponse(
        account_id=studio.account_id,
        credits=studio.balance,
        costs=studio.settings.credit_costs,
    )


@router.get("/credits/transactions", response_model=list[CreditTransaction])
async def transactions(limit: int = 50, session: dict = Depends(require_auth)):
    studio = get_studio(session["account_id"])
    return studio.ledger.transactions(studio.account_id)[:limit]
