"""
Error Handler Middleware

Every error leaves the API as {"error": ..., "message"?: ..., "requestId": ...}.
HTTPException details that are already dicts (the routes' {"error": ...} shape)
pass through unchanged apart from the request id.
"""

from typing import Any, Dict, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.errors import PersistenceFailure
from app.services.logger import logger


def _error_response(request: Request, status_code: int, body: Dict[str, Any], headers: Optional[dict] = None):
    body = {**body, 'requestId': getattr(request.state, 'request_id', None)}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning('Validation error', path=request.url.path, errors=exc.errors())
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, {
        'error': 'Validation error',
        'details': jsonable_encoder(exc.errors())
    })


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    detail may be a plain message or an {error, message} dict
    """
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}", path=request.url.path)
    body = exc.detail if isinstance(exc.detail, dict) else {'error': exc.detail or 'An error occurred'}
    return _error_response(request, exc.status_code, body, headers=getattr(exc, 'headers', None))


async def persistence_exception_handler(request: Request, exc: PersistenceFailure):
    """Store failures raised from CRUD routes"""
    logger.error(f"Persistence failure: {str(exc)}", path=request.url.path)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, {
        'error': 'Database error',
        'message': str(exc)
    })


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", path=request.url.path, exc_info=True)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, {
        'error': 'Internal server error',
        'message': 'An unexpected error occurred'
    })
