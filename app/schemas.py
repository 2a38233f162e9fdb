from pydantic import BaseModel, BeforeValidator, Field, field_validator
from typing import Annotated, List, Literal, Optional
from datetime import datetime

# Row primary keys go out as strings under "_id"
RecordId = Annotated[str, BeforeValidator(str)]


# 1. Shared Pieces
class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]  # [longitude, latitude]

    @field_validator("coordinates")
    @classmethod
    def check_coordinates(cls, value):
        if len(value) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        longitude, latitude = value
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise ValueError("coordinates out of range")
        return value

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class StoredRecord(BaseModel):
    pk: RecordId = Field(serialization_alias="_id")
    created_at: datetime = Field(serialization_alias="createdAt")

    class Config:
        from_attributes = True


# 2. The "Input" (Request)
# Required fields are Optional here: the route answers a missing one with
# {"error": "Missing required fields"} instead of a schema error.
class CheckInCreate(BaseModel):
    location: Optional[GeoPoint] = None
    interest: Optional[str] = None
    category: Optional[str] = None
    userId: Optional[str] = None

    def to_record(self) -> dict:
        longitude, latitude = self.location.longitude, self.location.latitude
        return {
            "latitude": latitude,
            "longitude": longitude,
            "geom": f"SRID=4326;POINT({longitude} {latitude})",
            "interest": self.interest,
            "category": self.category or "general",
            "user_id": self.userId,
        }


class MessageCreate(BaseModel):
    text: Optional[str] = None
    user: Optional[str] = None
    photoURL: Optional[str] = None

    def to_record(self) -> dict:
        return {"text": self.text, "user": self.user, "photo_url": self.photoURL or ""}


# 3. The "Output" (Response)
class CheckInResponse(StoredRecord):
    location: GeoPoint
    interest: str
    category: str
    user_id: Optional[str] = Field(default=None, serialization_alias="userId")


class TalkResponse(StoredRecord):
    external_id: Optional[str] = Field(default=None, serialization_alias="id")
    title: Optional[str] = None
    speaker: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    url: Optional[str] = None
    thumbnail: Optional[str] = None
    type: str = "Video"


class NgoResponse(StoredRecord):
    external_id: Optional[str] = Field(default=None, serialization_alias="id")
    name: Optional[str] = None
    type: str = "NGO"
    description: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    mission: Optional[str] = None


class MessageResponse(StoredRecord):
    text: str
    user: str
    photo_url: Optional[str] = Field(default="", serialization_alias="photoURL")


class RefreshResponse(BaseModel):
    success: bool = True
    count: int


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: float
    dbStatus: Literal["connected", "disconnected"]
