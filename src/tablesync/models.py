from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

Row = dict[str, Any]


class OptionItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str | None = None
    name: str | None = None


class ListingPage(BaseModel):
    """Envelope of a list response; row contents are passed through untouched."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    data: List[Row] = Field(default_factory=list)
    additional: dict[str, List[OptionItem]] = Field(default_factory=dict)
    total_pages: int = Field(default=1, alias="totalPages")

    @field_validator("additional", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class SessionData(BaseModel):
    access_token: str
    username: str | None = None
    env_name: str | None = None


@dataclass(frozen=True)
class SelectionEntry:
    id: Any
    selected: bool = False


@dataclass(frozen=True)
class TableState:
    rows: tuple[Row, ...] = ()
    supplementary: dict[str, list[OptionItem]] = field(default_factory=dict)
    selection: tuple[SelectionEntry, ...] = ()
    current_page: int = 1
    pages_count: int = 1
    search_query: str = ""
    available_filters: tuple[str, ...] = ()
    params: httpx.QueryParams = field(default_factory=httpx.QueryParams)
    is_loading: bool = True

    @property
    def all_selected(self) -> bool:
        return all(entry.selected for entry in self.selection)

    def selected_ids(self) -> list[Any]:
        return [entry.id for entry in self.selection if entry.selected]
