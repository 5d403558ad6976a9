"""Pydantic schemas for request/response validation."""

from katalog.schemas.common import HealthResponse, PaginatedResponse

__all__ = [
    "HealthResponse",
    "PaginatedResponse",
]
