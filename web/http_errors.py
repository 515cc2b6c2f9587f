"""Mapping of debate engine errors onto HTTP responses."""

import logging

from fastapi import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from debate_engine.errors import (
    DebateBusyError,
    DebateNotFoundError,
    InvalidTransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_exception(error: Exception) -> HTTPException:
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, DebateNotFoundError):
        return HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, (DebateBusyError, InvalidTransitionError)):
        return HTTPException(status_code=HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, (ValueError, ValidationError)):
        return HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=str(error))
    logger.error(f"Unexpected error handling request: {type(error).__name__}: {error}")
    return HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
