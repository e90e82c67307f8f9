"""Advisory nearby-artwork lookup for duplicate detection."""

from typing import Optional

from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.core.exceptions import ValidationError
from catalog_moderation.core.geo import bounding_box, haversine_meters, validate_coordinates
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.catalog import Artwork


class NearbyService:
    """Finds approved artworks close to a proposed location.

    Results are hints for the submitter and reviewer; nothing here blocks a
    submission.
    """

    @staticmethod
    def find_nearby(
        db: Session,
        lat: float,
        lon: float,
        radius_m: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        if not validate_coordinates(lat, lon):
            raise ValidationError("Coordinates out of range")
        radius_m = radius_m if radius_m is not None else settings.NEARBY_RADIUS_METERS
        limit = limit if limit is not None else settings.NEARBY_MAX_RESULTS
        if radius_m <= 0:
            raise ValidationError("Radius must be positive")

        min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius_m)
        with storage_errors(db, "nearby lookup"):
            candidates = (
                db.query(Artwork)
                .filter(
                    Artwork.status == "approved",
                    Artwork.lat.between(min_lat, max_lat),
                    Artwork.lon.between(min_lon, max_lon),
                )
                .all()
            )

        results = []
        for artwork in candidates:
            distance = haversine_meters(lat, lon, artwork.lat, artwork.lon)
            if distance <= radius_m:
                results.append({
                    "id": artwork.id,
                    "title": artwork.title,
                    "lat": artwork.lat,
                    "lon": artwork.lon,
                    "distance_meters": round(distance, 1),
                })
        results.sort(key=lambda r: r["distance_meters"])
        return results[:limit]


nearby_service = NearbyService()
