"""Canonical catalog records (read side for moderation)."""

from sqlalchemy import Column, String, Float, Text, DateTime
from catalog_moderation.db.base import Base, utcnow


class Artwork(Base):
    """Published artwork. Written by the materialization process, read here."""
    __tablename__ = "artworks"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=True)
    lat = Column(Float, nullable=False, index=True)
    lon = Column(Float, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="approved", index=True)
    tags_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Artist(Base):
    """Published artist profile."""
    __tablename__ = "artists"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="approved")
    created_at = Column(DateTime, default=utcnow, nullable=False)
