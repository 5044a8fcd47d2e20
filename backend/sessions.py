"""One StudioSession per authenticated account, shared across requests."""

from fastapi import HTTPException, status

from seoimg.errors import (
    CreditDebitError,
    GenerationCallError,
    InsufficientCreditsError,
    RunActiveError,
    SeoImgError,
    ValidationError,
)
from seoimg.session import StudioSession

_sessions: dict[str, StudioSession] = {}


def get_studio(account_id: str) -> StudioSession:
    if account_id not in _sessions:
        _sessions[account_id] = StudioSession(account_id)
    return _sessions[account_id]


def reset_sessions() -> None:
    _sessions.clear()


_STATUS_FOR = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientCreditsError, status.HTTP_402_PAYMENT_REQUIRED),
    (RunActiveError, status.HTTP_409_CONFLICT),
    (CreditDebitError, status.HTTP_409_CONFLICT),
    (GenerationCallError, status.HTTP_502_BAD_GATEWAY),
]


def http_error(error: SeoImgError) -> HTTPException:
    """Translate a domain error into the matching HTTP status."""
    for cls, code in _STATUS_FOR:
        if isinstance(error, cls):
            return HTTPException(status_code=code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)[:300])
