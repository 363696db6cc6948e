"""
JWT Access Token Validation

Validates Supabase Auth access tokens issued to signed-in users
"""

import jwt
from typing import Dict, Any
from app.config import Settings
from app.services.logger import logger

JWT_ALGORITHM = 'HS256'
JWT_AUDIENCE = 'authenticated'


def validate_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Validate and decode a Supabase access token
    Args:
        token: JWT token string
        settings: Application settings (holds the project JWT secret)
    Returns:
        Decoded token payload
    Raises:
        jwt.ExpiredSignatureError: If token is expired
        jwt.InvalidTokenError: If token is invalid
    """
    if not settings.SUPABASE_JWT_SECRET:
        raise jwt.InvalidTokenError('SUPABASE_JWT_SECRET is not configured')

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE
        )

        if not payload.get('sub'):
            raise jwt.InvalidTokenError('Token has no subject')

        return payload
    except jwt.ExpiredSignatureError:
        logger.warning('Access token expired')
        raise
    except jwt.InvalidTokenError as e:
        logger.warning(f'Invalid access token: {str(e)}')
        raise


def user_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the user object routes work with from a decoded token
    """
    return {
        'id': payload.get('sub'),
        'email': payload.get('email'),
        'role': payload.get('role'),
    }
