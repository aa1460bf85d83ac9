"""
Caller-facing option records for the CRUD surface.

`FindOptions` mirrors the query-string options of a list request and
`ClientProps` carries the client/version metadata handed to hooks.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

SortSpec = List[Union[str, Dict[str, int]]]


class FindOptions(BaseModel):
    include: List[str] = Field(default_factory=list, description="Keys to view, dotted for reference sub-fields.")
    where: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Constraint tree in wire form.")
    sort: SortSpec = Field(default_factory=list, description="Column names, `-name` or `{name: 1|-1}`.")
    limit: Optional[int] = Field(None, ge=0)
    skip: Optional[int] = Field(None, ge=0)

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }


class ClientProps(BaseModel):
    client: Optional[str] = None
    sdk_version: Optional[str] = Field(None, alias="sdkVersion")
    app_version: Optional[str] = Field(None, alias="appVersion")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }


__all__ = ["FindOptions", "ClientProps", "SortSpec"]
