"""Shared application constants.

Centralizes values used across the split, best-effort and crop logic so we
can document and adjust them in one place.
"""
from types import MappingProxyType

# Distance of one statute mile in meters
MILE_M = 1609.344

# Distance of one kilometer in meters
KM_M = 1000.0

# Split length per unit preference
SPLIT_DISTANCE_M = MappingProxyType({
    "metric": KM_M,
    "imperial": MILE_M,
})

# A trailing partial split shorter than this is merged into the previous one
SPLIT_EPSILON_M = 1.0

# Float tolerances for distance / time comparisons
DISTANCE_EPSILON_M = 1e-6
TIME_EPSILON_S = 1e-6

# Standard race distances tracked on the leaderboard (name -> meters).
STANDARD_DISTANCES = MappingProxyType({
    "400m": 400.0,
    "1/2 mile": 804.672,
    "1K": 1000.0,
    "1 mile": 1609.344,
    "2 mile": 3218.688,
    "5K": 5000.0,
    "10K": 10000.0,
    "15K": 15000.0,
    "10 mile": 16093.44,
    "20K": 20000.0,
    "Half-Marathon": 21097.5,
    "30K": 30000.0,
    "Marathon": 42195.0,
})

# Relative effort points per minute spent in zones 1..5
HR_ZONE_WEIGHTS = (1, 2, 3, 4, 5)

# Gaps between heart rate samples longer than this are treated as pauses
HR_MAX_GAP_S = 60.0

# Default heart rate zone bounds as fractions of HR max.
# Z1: [0.50, 0.60), Z2: [0.60, 0.70), ..., Z5: [0.90, 1.01)
HR_ZONE_BOUNDS = [0.5, 0.6, 0.7, 0.8, 0.9, 1.01]
