"""
FastAPI Main Application

Entry point for the email insights and research backend
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from app.config import settings, validate_env
from app.db.connection import test_connection
from app.errors import PersistenceFailure
from app.middleware.request_logger import RequestLoggerMiddleware
from app.middleware.error_handler import (
    validation_exception_handler,
    http_exception_handler,
    persistence_exception_handler,
    general_exception_handler
)
from app.middleware.rate_limiter import limiter, rate_limit_handler
from app.services.logger import logger
from app.routes import research, analysis, todos, calendar_events, workflows

# Create FastAPI app
app = FastAPI(
    title="Thread Insights Backend API",
    description="Email thread analysis with asynchronous topic research",
    version="1.0.0"
)

# CORS configuration
cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(',') if o.strip()] or ['*']

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_origins != ['*'],
    allow_methods=['*'],
    allow_headers=['*'],
)

# Add request logging middleware
app.add_middleware(RequestLoggerMiddleware)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Add error handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(PersistenceFailure, persistence_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


# Health check endpoint
@app.get('/health')
async def health_check():
    """Health check endpoint"""
    return {'status': 'ok', 'service': 'thread-insights-backend'}


# Startup event
@app.on_event('startup')
async def startup_event():
    """Check configuration and database on startup"""
    logger.info('Starting Thread Insights Backend...')

    missing = validate_env()
    if missing:
        logger.warning(f'Missing environment variables: {", ".join(missing)}')

    connected = await test_connection()
    if not connected:
        logger.warning('Database connection failed - some features may not work')

    logger.info('Thread Insights Backend started successfully')


# Shutdown event
@app.on_event('shutdown')
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info('Shutting down Thread Insights Backend...')


app.include_router(research.router, prefix='/api/research', tags=['research'])
app.include_router(analysis.router, prefix='/api', tags=['analysis'])
app.include_router(todos.router, prefix='/api/todos', tags=['todos'])
app.include_router(calendar_events.router, prefix='/api/calendar-events', tags=['calendar-events'])
app.include_router(workflows.router, prefix='/api/workflows', tags=['workflows'])


if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=settings.PORT)
