"""Schema baselines and the ``{"data": ...}`` success envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class StrictModel(BaseModel):
    """Response DTO base; unknown fields are a programming error."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that rejects unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)


class DataResponse(BaseModel, Generic[T]):
    data: T


__all__ = ["DataResponse", "StrictModel", "StrictRequestModel"]
