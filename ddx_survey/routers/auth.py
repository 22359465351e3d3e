import logging

from fastapi import APIRouter, HTTPException, Response, status

from ddx_survey.auth import ADMIN_COOKIE_NAME, check_admin_password, issue_admin_token
from ddx_survey.config import settings
from ddx_survey.models import AdminLoginRequest, AdminLoginResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["authentication"])


@router.post("/login", response_model=AdminLoginResponse)
async def login(request: AdminLoginRequest, response: Response):
    """Check the admin password and issue a signed session token"""
    if not check_admin_password(request.password):
        logger.warning("Failed admin login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password"
        )

    token = issue_admin_token()
    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.admin_session_max_age_seconds,
        samesite="lax"
    )
    logger.info("Admin logged in")

    return AdminLoginResponse(token=token, expires_in=settings.admin_session_max_age_seconds)


@router.post("/logout")
async def logout(response: Response):
    """Clear the admin session cookie"""
    response.delete_cookie(ADMIN_COOKIE_NAME)
    return {"status": "success", "message": "Logged out successfully"}
