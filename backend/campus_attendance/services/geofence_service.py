# backend/campus_attendance/services/geofence_service.py
"""Geofence evaluation: great-circle distance and radius checks."""
import math
from typing import Dict

EARTH_RADIUS_KM = 6371

class GeofenceService:
    """Pure location math; callers validate coordinate ranges first."""

    @staticmethod
    def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate haversine distance between two GPS points in meters."""
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat / 2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon / 2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return EARTH_RADIUS_KM * c * 1000

    @staticmethod
    def is_inside(distance: float, radius_meters: float) -> bool:
        """The boundary itself counts as inside."""
        return distance <= radius_meters

    @staticmethod
    def verify_location(latitude: float, longitude: float, geofence) -> Dict:
        """Check a point against a geofence."""
        distance = GeofenceService.distance_meters(
            latitude, longitude,
            geofence.latitude, geofence.longitude
        )

        return {
            'is_inside': GeofenceService.is_inside(distance, geofence.radius_meters),
            'distance': distance,
            'radius_meters': geofence.radius_meters,
            'center': {
                'latitude': geofence.latitude,
                'longitude': geofence.longitude
            }
        }
