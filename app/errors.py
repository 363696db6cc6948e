"""
Error Types

Failure taxonomy shared by the research pipeline and the routes
"""

from fastapi import HTTPException, status


class SchemaViolation(Exception):
    """Structured model output does not match the expected shape"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f'{field}: {message}')


class ProviderFailure(Exception):
    """The generation or workflow backend failed (unreachable, rate limited, error response)"""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceFailure(Exception):
    """A store read or write failed"""


class Unauthorized(HTTPException):
    """Caller identity is missing or invalid"""

    def __init__(self, detail: str = 'Unauthorized'):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
