"""
Service-area geofencing.

Areas are either a GeoJSON Polygon (positions in [lng, lat] order) or a
circle given by a center and a radius in kilometres. Polygons are handled as
shapely geometries; circles use haversine distance for containment and a
buffer in a local kilometre projection for overlap checks.
"""
import math
from decimal import Decimal
from itertools import combinations

from shapely.affinity import scale
from shapely.geometry import Point, Polygon, shape
from shapely.validation import explain_validity

from stableride.errors import ValidationError
from stableride.services.enhancements import to_money

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.32


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def to_shape(polygon: dict) -> Polygon:
    return shape(polygon)


def point_in_polygon(lat: float, lng: float, polygon: dict) -> bool:
    """Points on the boundary count as inside, like the circle check."""
    return to_shape(polygon).covers(Point(lng, lat))


def _is_position(position) -> bool:
    if not isinstance(position, (list, tuple)) or len(position) not in (2, 3):
        return False
    for value in position:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return False
    lng, lat = position[0], position[1]
    return -180 <= lng <= 180 and -90 <= lat <= 90


def validate_polygon(polygon: dict) -> None:
    if not isinstance(polygon, dict) or polygon.get("type") != "Polygon":
        raise ValidationError("Polygon must be a GeoJSON Polygon")
    coordinates = polygon.get("coordinates")
    if not coordinates or not isinstance(coordinates, list):
        raise ValidationError("Polygon must have coordinates")
    for ring in coordinates:
        if not isinstance(ring, list) or len(ring) < 4:
            raise ValidationError("Polygon ring must have at least 4 positions")
        if not all(_is_position(p) for p in ring):
            raise ValidationError("Polygon positions must be [lng, lat] numbers within range")
        if list(ring[0][:2]) != list(ring[-1][:2]):
            raise ValidationError("Polygon ring must be closed")

    geometry = to_shape(polygon)
    if not geometry.is_valid:
        raise ValidationError(f"Polygon is not valid: {explain_validity(geometry)}")


def validate_area_shape(polygon: dict | None, center: dict | None, radius_km: float | None) -> None:
    if polygon is not None:
        validate_polygon(polygon)
        return
    if center is None or radius_km is None:
        raise ValidationError("Service area needs a polygon or a center and radius")
    if radius_km <= 0:
        raise ValidationError("Radius must be positive")


def area_contains(area, lat: float, lng: float) -> bool:
    if area.polygon:
        return point_in_polygon(lat, lng, area.polygon)
    if area.center and area.radius_km:
        return haversine_km(lat, lng, area.center["lat"], area.center["lng"]) <= area.radius_km
    return False


def _reference_lat(area) -> float | None:
    if area.polygon:
        return to_shape(area.polygon).centroid.y
    if area.center and area.radius_km:
        return area.center["lat"]
    return None


def projected_shape(area, ref_lat: float):
    """The area in an equirectangular kilometre plane around ref_lat."""
    x_factor = KM_PER_DEGREE * math.cos(math.radians(ref_lat))
    if area.polygon:
        return scale(to_shape(area.polygon), xfact=x_factor, yfact=KM_PER_DEGREE, origin=(0, 0))
    if area.center and area.radius_km:
        center = Point(area.center["lng"] * x_factor, area.center["lat"] * KM_PER_DEGREE)
        return center.buffer(area.radius_km)
    return None


def approximate_area_km2(area) -> float:
    if area.polygon:
        return projected_shape(area, _reference_lat(area)).area
    if area.radius_km:
        return math.pi * area.radius_km ** 2
    return 0.0


def find_overlaps(areas: list) -> list[tuple[str, str]]:
    """Pairs of area ids whose shapes share interior; touching edges do not count."""
    overlaps = []
    for a, b in combinations(areas, 2):
        lat_a, lat_b = _reference_lat(a), _reference_lat(b)
        if lat_a is None or lat_b is None:
            continue
        ref_lat = (lat_a + lat_b) / 2
        shape_a, shape_b = projected_shape(a, ref_lat), projected_shape(b, ref_lat)
        if shape_a.intersects(shape_b) and not shape_a.touches(shape_b):
            overlaps.append((a.id, b.id))
    return overlaps


# ---------------------------------------------------------------------------
# Surcharge
# ---------------------------------------------------------------------------

def matching_areas(areas: list, lat: float, lng: float) -> list:
    return [a for a in areas if a.is_active and area_contains(a, lat, lng)]


def check_availability(areas: list, lat: float, lng: float) -> dict:
    matches = matching_areas(areas, lat, lng)
    fixed = sum((Decimal(str(a.surcharge_amount or 0)) for a in matches), Decimal("0"))
    percentage = sum((Decimal(str(a.surcharge_percentage or 0)) for a in matches), Decimal("0"))
    return {
        "available": bool(matches),
        "areas": [{"id": a.id, "name": a.name} for a in matches],
        "surcharge_amount": to_money(fixed),
        "surcharge_percentage": percentage,
    }


def calculate_surcharge(areas: list, lat: float, lng: float, amount) -> Decimal:
    """fixed + amount * pct / 100 over every active area containing the point."""
    availability = check_availability(areas, lat, lng)
    if not availability["available"]:
        return Decimal("0.00")
    pct_part = Decimal(str(amount)) * availability["surcharge_percentage"] / Decimal("100")
    return to_money(availability["surcharge_amount"] + pct_part)


def to_geojson(areas: list) -> dict:
    features = []
    for area in areas:
        if area.polygon:
            geometry = area.polygon
        elif area.center:
            geometry = {"type": "Point", "coordinates": [area.center["lng"], area.center["lat"]]}
        else:
            continue
        properties = {
            "id": area.id,
            "name": area.name,
            "description": area.description,
            "is_active": area.is_active,
            "surcharge_amount": float(area.surcharge_amount) if area.surcharge_amount is not None else None,
            "surcharge_percentage": float(area.surcharge_percentage) if area.surcharge_percentage is not None else None,
        }
        if area.radius_km and not area.polygon:
            properties["radius_km"] = area.radius_km
        features.append({"type": "Feature", "geometry": geometry, "properties": properties})
    return {"type": "FeatureCollection", "features": features}
