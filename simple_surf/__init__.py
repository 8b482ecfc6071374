from .feature import DESC_SIZE, FeaturePoint, FeaturePointsCollection
from .integral import IntegralImage, convert_rgb_to_luminosity
from .matched import MatchedPointsCollection
from .octave import OctaveLayer, OctaveMap
from .surf import (
    SimpleSURF,
    SurfConfigError,
    SurfParams,
    compute_matching_points,
    get_euclidean_distance,
)

__all__ = [
    "DESC_SIZE",
    "FeaturePoint",
    "FeaturePointsCollection",
    "IntegralImage",
    "MatchedPointsCollection",
    "OctaveLayer",
    "OctaveMap",
    "SimpleSURF",
    "SurfConfigError",
    "SurfParams",
    "compute_matching_points",
    "convert_rgb_to_luminosity",
    "get_euclidean_distance",
]
