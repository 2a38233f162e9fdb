from sqlalchemy import Column, Integer, String, Float, Text, DateTime
from sqlalchemy.sql import func
from geoalchemy2 import Geometry
from .database import Base


class CheckIn(Base):
    __tablename__ = "map_checkins"

    # 1. Metadata
    pk = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # 2. User Inputs
    interest = Column(Text, nullable=False)
    category = Column(String, nullable=False, default="general", index=True)
    user_id = Column(String)  # Opaque, no integrity enforcement

    # 3. Geolocation
    # Lat/Lon as plain floats for easy reading...
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # ...AND as a Geometry Point (GiST indexed) for map queries
    geom = Column(Geometry(geometry_type="POINT", srid=4326))

    @property
    def location(self):
        # GeoJSON order is [longitude, latitude]
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}


class Talk(Base):
    __tablename__ = "ted_talks"

    pk = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    external_id = Column(String)  # Upstream talk id
    title = Column(Text)          # Full-text indexed: title_text_index
    speaker = Column(String)
    description = Column(Text)
    duration = Column(String)
    url = Column(String)
    thumbnail = Column(String)
    type = Column(String, default="Video")


class Ngo(Base):
    __tablename__ = "ngos"

    pk = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    external_id = Column(String)  # EIN
    name = Column(Text)           # Full-text indexed: ngo_name_text_index
    type = Column(String, default="NGO", index=True)
    description = Column(Text)
    website = Column(String)
    location = Column(String)     # "City, ST"
    mission = Column(Text)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    pk = Column(Integer, primary_key=True, index=True)
    # Recency index, history is read newest first
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    text = Column(Text, nullable=False)
    user = Column(String, nullable=False)  # Opaque display identity
    photo_url = Column(String, default="")
