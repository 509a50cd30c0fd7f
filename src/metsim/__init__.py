"""Top-level package for metsim."""

from .grid import BucketGrid, validate_observations  # noqa: F401
from .helpers import (  # noqa: F401
    DAYS_IN_YEAR,
    HOURS_IN_DAY,
    calendar_keys,
    check_random_state,
)
from .neighborhood import (  # noqa: F401
    NeighborhoodSampler,
    get_constrained_indices,
    window_cells,
)

__all__ = [
    "BucketGrid",
    "NeighborhoodSampler",
    "get_constrained_indices",
    "window_cells",
    "validate_observations",
    "calendar_keys",
    "check_random_state",
    "DAYS_IN_YEAR",
    "HOURS_IN_DAY",
]
