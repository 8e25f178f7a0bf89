"""Central module containing the numeric settings used by the curve algorithms"""

from __future__ import annotations

# Default maximum deviation between a curve and its polyline approximation
DEFAULT_TOLERANCE: float = 0.1

# Squared lengths and denominators below this value are treated as zero
EPSILON: float = 1.0e-12

# Bounding positions closer than this are considered identical
BOUNDING_POSITION_EPSILON: float = 1.0e-6

# Midpoints deviating at least this fraction of the tolerance are kept
SMOOTHNESS_FACTOR: float = 0.6

# Upper limit for the recursive subdivision of rational curves
MAX_SUBDIVISION_DEPTH: int = 32

# Number of halving steps when searching a parameter by bisection
BISECTION_ITERATIONS: int = 60

# Half side length of the square standing in for "the whole plane"
INFINITE_BOUNDS_EXTENT: float = 1.0e5

# Parameter samples per continuous branch when clipping infinite curves to bounds
CLIP_SAMPLES: int = 512
