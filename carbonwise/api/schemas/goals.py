from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

GoalDuration = Literal["week", "2weeks", "month", "3months"]


class GoalCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=32)
    title: Optional[str] = Field(None, max_length=255)
    target_value: float = Field(10.0, gt=0)
    duration: GoalDuration = "month"
    duration_days: Optional[int] = Field(None, ge=1, le=365)


class GoalProgressUpdate(BaseModel):
    current_value: Optional[float] = Field(None, ge=0)
    increment: Optional[float] = None


class GoalUpdate(BaseModel):
    type: Optional[str] = Field(None, min_length=1, max_length=32)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    target_value: Optional[float] = Field(None, gt=0)
    duration_days: Optional[int] = Field(None, ge=1, le=365)
    xp_reward: Optional[int] = Field(None, ge=0)


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    target_value: float
    current_value: float
    duration: str
    xp_reward: int
    status: str
    start_date: date
    end_date: date
    created_at: datetime
    progress: int = 0
    days_remaining: int = 0
    is_expired: bool = False


class GoalListResponse(BaseModel):
    goals: List[GoalResponse]


class GoalCreatedResponse(BaseModel):
    message: str
    goal: GoalResponse
    xp_awarded: int


class GoalProgressResponse(BaseModel):
    message: str
    goal: GoalResponse
    xp_awarded: int
    completed: bool


class GoalUpdatedResponse(BaseModel):
    message: str
    goal: GoalResponse


class GoalTemplate(BaseModel):
    type: str
    title: str
    description: str
    target_unit: str


class GoalTemplatesResponse(BaseModel):
    templates: List[GoalTemplate]
