from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class TrendFiltersModel(BaseModel):
    group_by: Literal["week", "day", "month"] = "week"
    selected_slot: str = "all"
    selected_category: str = "all"
    min_score: float = 0.0
    query: str = ""


class GroupsRequest(BaseModel):
    filters: TrendFiltersModel = Field(default_factory=TrendFiltersModel)
    expanded: Dict[str, bool] = Field(default_factory=dict)


class ExportScopeModel(BaseModel):
    scope: Literal["all", "month", "week"] = "all"
    month: Optional[str] = None
    week: Optional[int] = None


class SlotOption(BaseModel):
    key: str
    label: str


class MetaSlotsResponse(BaseModel):
    group_by: str
    slots: List[SlotOption]


class MetaListResponse(BaseModel):
    values: List[str]
