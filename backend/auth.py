"""Authentication layer for the seoimg API.

Bearer tokens are issued out of band (by the account backend) and configured
as ``SEOIMG_API_TOKENS="token:account_id,..."``. Each token maps to exactly one
credit account; the API never sees passwords.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from seoimg.config import get_settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def validate_token(token: str) -> Optional[dict]:
    """Return session dict ({token, account_id}) if the token is configured, else None."""
    for known, account_id in get_settings().api_token_map.items():
        if hmac.compare_digest(known, token):
            return {"token": token, "account_id": account_id}
    return None


async def require_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> dict:
    """FastAPI dependency: extract and validate bearer token.

    Returns the session dict on success, raises 401 otherwise.
    """
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = validate_token(credentials.credentials)
    if not session:
        logger.info("Rejected unknown API token for %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
