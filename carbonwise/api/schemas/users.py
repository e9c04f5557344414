from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from carbonwise.api.schemas.activities import BadgeResponse


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)


class LevelProgress(BaseModel):
    current_xp: int
    level: int
    level_title: str
    xp_in_level: int
    xp_to_next: int
    xp_needed: int
    progress: int


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    xp: int
    level: int
    level_title: str
    streak: int
    last_activity_date: Optional[date] = None
    progress: LevelProgress
    created_at: datetime


class BadgeListResponse(BaseModel):
    badges: List[BadgeResponse]
    earned_count: int


class CalculatorProfileSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    energy_source: str = "mixed"
    fuel_type: str = "petrol"
    heating_type: str = "natural-gas"
    diet_type: str = "average"
    local_food: bool = False
    low_food_waste: bool = False
    compost: bool = False
    recycle_paper: bool = True
    recycle_plastic: bool = True
    recycle_glass: bool = True
    recycle_metal: bool = False
    single_use: Literal["low", "medium", "high"] = "medium"


class CalculatorProfileUpdate(BaseModel):
    energy_source: Optional[str] = None
    fuel_type: Optional[str] = None
    heating_type: Optional[str] = None
    diet_type: Optional[str] = None
    local_food: Optional[bool] = None
    low_food_waste: Optional[bool] = None
    compost: Optional[bool] = None
    recycle_paper: Optional[bool] = None
    recycle_plastic: Optional[bool] = None
    recycle_glass: Optional[bool] = None
    recycle_metal: Optional[bool] = None
    single_use: Optional[Literal["low", "medium", "high"]] = None
