from typing import Optional

from fastapi import Cookie, Header, HTTPException, status

from ddx_survey.auth import ADMIN_COOKIE_NAME, verify_admin_token


async def require_admin(
    admin_session: Optional[str] = Cookie(None, alias=ADMIN_COOKIE_NAME),
    authorization: Optional[str] = Header(None)
) -> None:
    """Dependency that rejects requests without a valid admin token"""
    token = admin_session
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer "):].strip()

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication required."
        )

    if not verify_admin_token(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired admin session. Please login again."
        )
