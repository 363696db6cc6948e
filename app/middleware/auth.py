"""
Authentication Middleware

Resolves the acting user from a Supabase access token (cookie or bearer header)
"""

from typing import Optional, Dict, Any
import jwt
from fastapi import Depends, Cookie
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import Settings, get_settings
from app.errors import Unauthorized
from app.services.auth.jwt_service import validate_access_token, user_from_payload

security = HTTPBearer(auto_error=False)


async def require_auth(
    access_token: Optional[str] = Cookie(None, alias='sb-access-token'),
    authorization: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    """
    Require authentication - raises 401 if not authenticated
    Args:
        access_token: Access token from cookie
        authorization: Bearer token from Authorization header (optional)
    Returns:
        User object
    """
    # Bearer header wins over the cookie
    token = authorization.credentials if authorization else access_token

    if not token:
        raise Unauthorized('Authentication required')

    try:
        payload = validate_access_token(token, settings)
    except jwt.InvalidTokenError:
        raise Unauthorized('Invalid or expired session')

    return user_from_payload(payload)

