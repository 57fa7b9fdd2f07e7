"""Distance between user and pharmacy coordinates."""

from abc import ABC, abstractmethod
import math
import random

from flask import Flask

from schema import Coordinates
from settings import Settings

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in km between two latitude/longitude pairs."""

    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (math.sin(d_lat / 2)**2 + math.cos(math.radians(a.lat)) *
         math.cos(math.radians(b.lat)) * math.sin(d_lng / 2)**2)
    h = min(h, 1.0)  # rounding can push antipodal points just past 1
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class DistanceStrategy(ABC):
    """Estimates a distance when the caller gave no coordinates."""

    @abstractmethod
    def fallback_km(self) -> float:
        """Get a stand-in distance in km."""

        raise NotImplementedError()

    def distance_km(self, user: Coordinates | None,
                    pharmacy: Coordinates) -> float:
        """Measure from the user if we know where they are, else estimate."""

        if user is None:
            return self.fallback_km()
        return haversine_km(user, pharmacy)


class RandomDistanceStrategy(DistanceStrategy):
    """Mock estimate between 1 and 6 km for manual runs."""

    def __init__(self, seed: int | None = None):
        self.rng = random.Random(seed)

    def fallback_km(self) -> float:
        return round(self.rng.uniform(1.0, 6.0), 1)


class FixedDistanceStrategy(DistanceStrategy):
    """Always the same estimate, for unit tests."""

    def __init__(self, km: float):
        self.km = km

    def fallback_km(self) -> float:
        return self.km


def get_distance_strategy(app: Flask | None) -> DistanceStrategy:
    """
    Factory function to get a distance strategy based on the environment.

    Args:
        app (Flask|None): the Flask app (None if unit testing)

    Returns:
        The new distance strategy instance.
    """

    if not app:
        return FixedDistanceStrategy(Settings.FIXED_FALLBACK_DISTANCE_KM)
    return RandomDistanceStrategy(Settings.DISTANCE_SEED)
