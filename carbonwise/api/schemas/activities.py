from datetime import date as Date
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActivityBase(BaseModel):
    category: str = Field(..., min_length=1, max_length=32)
    description: Optional[str] = Field(None, max_length=500)
    value: float = Field(..., ge=0)
    unit: Optional[str] = Field(None, max_length=16)
    date: Optional[Date] = None

    @field_validator("category")
    @classmethod
    def lower_category(cls, v: str) -> str:
        return v.strip().lower()


class ActivityCreate(ActivityBase):
    sub_type: Optional[str] = Field(None, description="Explicit subtype, skips keyword classification")
    fuel_type: Optional[str] = Field(None, description="Car fuel: petrol | diesel | hybrid | electric")


class ActivityUpdate(BaseModel):
    category: Optional[str] = Field(None, min_length=1, max_length=32)
    description: Optional[str] = Field(None, max_length=500)
    value: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=16)
    date: Optional[Date] = None
    sub_type: Optional[str] = None
    fuel_type: Optional[str] = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    description: str
    value: float
    unit: str
    emissions: float
    date: Date
    created_at: datetime


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    total: int
    limit: int
    offset: int


class BadgeResponse(BaseModel):
    key: str
    name: str
    description: str
    icon: str
    xp_reward: int
    earned: bool = True
    earned_at: Optional[datetime] = None


class ActivityCreatedResponse(BaseModel):
    message: str
    activity: ActivityResponse
    activity_type: str
    xp_earned: int
    streak: int
    new_badges: List[BadgeResponse]
    completed_goals: List[int]
