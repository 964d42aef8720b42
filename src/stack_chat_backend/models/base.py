"""Base model for API payloads."""

from pydantic import BaseModel, ConfigDict


class ApiModel(BaseModel):
    """Base API model with camelCase aliases enabled."""

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(ApiModel):
    """Structured error body returned for every failed request."""

    error: str
    category: str
