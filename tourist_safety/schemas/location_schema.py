from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LocationUpdateRequest(BaseModel):
    dtid: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    altitude: Optional[float] = None
    accuracy: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[datetime] = None  # default: now()


class GeofenceCheckRequest(BaseModel):
    dtid: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
