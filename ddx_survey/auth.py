"""
Admin authentication.

A single shared password (ADMIN_PASSWORD) unlocks the admin API. A successful
check issues a signed, time-limited token; every admin request presents it
back and the signature and age are verified server side.
"""

import logging
import secrets
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ddx_survey.config import settings
from ddx_survey.exceptions import AdminNotConfigured

logger = logging.getLogger(__name__)

ADMIN_TOKEN_SALT = "admin-session"
ADMIN_COOKIE_NAME = "admin_session"


def get_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt=ADMIN_TOKEN_SALT)


def check_admin_password(password: str) -> bool:
    """
    Compare a password against the configured admin password.

    Raises:
        AdminNotConfigured: If ADMIN_PASSWORD is empty
    """
    if not settings.admin_password:
        raise AdminNotConfigured("ADMIN_PASSWORD is not set")
    return secrets.compare_digest(password.encode("utf-8"), settings.admin_password.encode("utf-8"))


def issue_admin_token() -> str:
    """Create a signed admin session token"""
    return get_serializer().dumps({"role": "admin", "nonce": secrets.token_urlsafe(8)})


def verify_admin_token(token: Optional[str]) -> bool:
    """Check signature and age of an admin token"""
    if not token:
        return False
    try:
        data = get_serializer().loads(token, max_age=settings.admin_session_max_age_seconds)
    except SignatureExpired:
        logger.info("Rejected expired admin token")
        return False
    except BadSignature:
        logger.warning("Rejected admin token with bad signature")
        return False
    return isinstance(data, dict) and data.get("role") == "admin"
