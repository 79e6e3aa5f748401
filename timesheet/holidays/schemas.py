"""Holiday Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date as date_type
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HolidayCreate(BaseModel):
    date: date_type
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date_type
    name: str
    description: Optional[str] = None
