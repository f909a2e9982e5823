from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

FilterOp = Literal["eq", "ne", "gt", "gte", "lt", "lte", "like", "in", "nin", "between", "isnull", "notnull"]

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

T = TypeVar("T")


class FilterClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    op: FilterOp = "eq"
    values: List[str] = []


class OrderSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    desc: bool = False


def _positive_or(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


class PageRequest(BaseModel):
    page: int = DEFAULT_PAGE
    size: int = DEFAULT_PAGE_SIZE

    @field_validator("page", mode="before")
    @classmethod
    def _clamp_page(cls, value: Any) -> int:
        return _positive_or(value, DEFAULT_PAGE)

    @field_validator("size", mode="before")
    @classmethod
    def _clamp_size(cls, value: Any) -> int:
        return _positive_or(value, DEFAULT_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


@dataclass
class PageResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    total: int = 0
