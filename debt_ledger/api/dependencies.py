"""Dependency injection and error mapping for FastAPI endpoints"""

import logging
from fastapi import Header, HTTPException, Request

from debt_ledger.domain.exceptions import ConsistencyError, DomainException, NotFoundError, ValidationError


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_acting_user(x_acting_user: str = Header(..., min_length=1)) -> str:
    """Opaque label of the identity making the request, supplied by the auth layer"""
    return x_acting_user.strip()


def to_http_error(error: DomainException, request_id: str = "unknown") -> HTTPException:
    """Translate a domain error into the matching HTTP error"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ValidationError):
        logging.warning(f"Rejected: {error.reason}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=error.reason)
    if isinstance(error, ConsistencyError):
        logging.error(f"Consistency error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
