"""
taxonomy_import.values - Tagged custom-field values.

A custom value is a plain scalar (str / int / float) or a GeoPoint.
Values are stored as JSON text in term_fields; GeoPoints round-trip as
{"lat": .., "lng": ..} objects.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

FIELD_TYPE_STRING = "string"
FIELD_TYPE_GEOLOCATION = "geolocation"
FIELD_TYPES = frozenset({FIELD_TYPE_STRING, FIELD_TYPE_GEOLOCATION})

# Plain decimal or exponent notation only: no nan/inf words, no "1_000"
_NUMERIC = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\Z", re.ASCII)


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


FieldValue = Union[str, int, float, GeoPoint]


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not _NUMERIC.match(value.strip()):
            return None
        value = float(value.strip())
    elif isinstance(value, int):
        try:
            value = float(value)
        except OverflowError:
            return None
    if not isinstance(value, float) or not math.isfinite(value):
        return None
    return value


def as_geopoint(value: Any) -> Optional[GeoPoint]:
    """
    Coerce a GeoPoint, a {lat, lng} mapping or a "lat,lng" string into
    a GeoPoint.  Returns None unless both coordinates are numeric.
    """
    if isinstance(value, GeoPoint):
        return value
    if isinstance(value, str) and value.count(",") == 1:
        lat_raw, lng_raw = value.split(",")
        value = {"lat": lat_raw, "lng": lng_raw}
    if not isinstance(value, Mapping):
        return None
    lat = _to_float(value.get("lat"))
    lng = _to_float(value.get("lng"))
    if lat is None or lng is None:
        return None
    return GeoPoint(lat, lng)


def encode_value(value: FieldValue) -> str:
    if isinstance(value, GeoPoint):
        return json.dumps(value.to_dict())
    return json.dumps(value, ensure_ascii=False)


def decode_value(raw: Optional[str]) -> Optional[FieldValue]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw
    if isinstance(data, dict):
        return as_geopoint(data)
    return data


def _scalar_key(value: Any):
    if value is None:
        return ""
    num = _to_float(value)
    if num is not None:
        return num
    return str(value)


def values_differ(current: Optional[FieldValue], new: FieldValue) -> bool:
    """
    Loose comparison used to decide whether a save is needed.

    GeoPoints compare coordinate-wise; scalars treat None and "" as equal
    and compare numeric strings by value ("1.50" == 1.5).
    """
    if isinstance(current, GeoPoint) or isinstance(new, GeoPoint):
        cur = as_geopoint(current) if not isinstance(current, GeoPoint) else current
        nxt = as_geopoint(new) if not isinstance(new, GeoPoint) else new
        if cur is None or nxt is None:
            return True
        return cur.lat != nxt.lat or cur.lng != nxt.lng
    return _scalar_key(current) != _scalar_key(new)
