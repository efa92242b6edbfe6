import math
from typing import Optional


def _trunc3(value: float) -> float:
    # truncated, not rounded: 8.4567 -> 8.456
    return math.trunc(value * 1000) / 1000


def area_label(lat: float, lng: float, accuracy_m: Optional[int] = None) -> str:
    acc = f" · GPS ±{accuracy_m}m" if accuracy_m and accuracy_m > 0 else ""
    return f"Near {_trunc3(lat):.3f}, {_trunc3(lng):.3f}{acc}"


def distance_rough(lat: float, lng: float) -> float:
    # NOT a real distance, only a display figure until real geocoding exists
    return math.sqrt(lat * lat + lng * lng) * 1000


def locate_label(lat: float, lng: float) -> str:
    return f"Lat {lat:.5f}, Lng {lng:.5f} (~{round(distance_rough(lat, lng))}m)"
