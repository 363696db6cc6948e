"""
Rate Limiter Middleware

slowapi limits for the endpoints that call the model provider. Authenticated
requests are counted per session token so users behind one NAT do not share a
bucket; anonymous requests fall back to the client address.
"""

import hashlib
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from starlette.responses import JSONResponse
from app.config import settings

SESSION_COOKIE = 'sb-access-token'


def session_key(request: Request) -> str:
    """Limiter bucket: a digest of the bearer/cookie token, else the remote address"""
    authorization = request.headers.get('authorization', '')
    token = authorization[7:] if authorization.lower().startswith('bearer ') else request.cookies.get(SESSION_COOKIE)
    if token:
        return 'session:' + hashlib.sha256(token.encode()).hexdigest()[:16]
    return get_remote_address(request)


limiter = Limiter(key_func=session_key)

research_limiter = limiter.limit(settings.RESEARCH_RATE_LIMIT)
analyze_limiter = limiter.limit(settings.ANALYZE_RATE_LIMIT)


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    response = JSONResponse(
        status_code=429,
        content={
            'error': 'Rate limit exceeded',
            'message': f'Too many requests. Limit: {exc.detail}',
            'requestId': getattr(request.state, 'request_id', None)
        }
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
