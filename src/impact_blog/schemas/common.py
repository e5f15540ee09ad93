"""Response envelope schemas shared across endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Uniform success envelope."""

    success: bool = Field(default=True, description="Whether the request succeeded")
    data: DataT = Field(description="Response payload")


class ListEnvelope(BaseModel, Generic[DataT]):
    """Success envelope for collections."""

    success: bool = Field(default=True, description="Whether the request succeeded")
    count: int = Field(description="Number of items in this response")
    data: list[DataT] = Field(default_factory=list, description="Items")


class PageRef(BaseModel):
    """Reference to a neighbouring page."""

    page: int = Field(description="Page number")
    limit: int = Field(description="Items per page")


class ErrorResponse(BaseModel):
    """Error envelope."""

    success: bool = Field(default=False, description="Always false")
    message: str = Field(description="Human readable error message")
    stack: str | None = Field(default=None, description="Traceback outside production")
