from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CRMEntityCreate(BaseModel):
    name: str = Field(min_length=1)


class CRMEntityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    owner_id: int | None
    created_at: datetime
    updated_at: datetime
