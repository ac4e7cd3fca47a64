from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PageMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


def page_meta(page: int, limit: int, total: int) -> PageMeta:
    return PageMeta(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit if limit else 0)


class ErrorBody(BaseModel):
    code: str
    message: str
    errors: Optional[dict] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorBody
