import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle (haversine) distance between two (lat, lon) points in kilometres.
    Inputs are not range-checked here.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dl / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lon < -180 or self.max_lon > 180

    def contains(self, lat: float, lon: float) -> bool:
        if lat < self.min_lat or lat > self.max_lat:
            return False
        if self.min_lon <= lon <= self.max_lon:
            return True
        # box spills past +/-180
        return self.min_lon <= lon + 360 <= self.max_lon or self.min_lon <= lon - 360 <= self.max_lon


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Smallest lat/lon box containing every point within radius_km of (lat, lon).
    Used only as a pre-filter; callers still check distance_km.
    """
    ang = radius_km / EARTH_RADIUS_KM
    lat_r = math.radians(lat)
    min_lat_r = lat_r - ang
    max_lat_r = lat_r + ang

    if min_lat_r <= -math.pi / 2 or max_lat_r >= math.pi / 2:
        # a pole is inside the circle, every longitude qualifies
        return BoundingBox(
            min_lat=max(math.degrees(min_lat_r), -90.0),
            max_lat=min(math.degrees(max_lat_r), 90.0),
            min_lon=-180.0,
            max_lon=180.0,
        )

    dlon = math.degrees(math.asin(min(1.0, math.sin(ang) / math.cos(lat_r))))
    return BoundingBox(
        min_lat=math.degrees(min_lat_r),
        max_lat=math.degrees(max_lat_r),
        min_lon=lon - dlon,
        max_lon=lon + dlon,
    )
