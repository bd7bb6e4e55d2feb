"""Human readable renderings of distances, waits and radii."""

from __future__ import annotations


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"


def format_wait_time(minutes: int) -> str:
    if minutes <= 0:
        return "No wait"
    if minutes <= 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours} hr {mins} min" if mins else f"{hours} hr"


def format_radius(radius_m: float) -> str:
    return f"{radius_m / 1000:g} km"
