"""General utility functions for detaug.

This module provides:
    - Process and worker identity used for seeding
"""

from .distributed import (
    get_rank,
    get_worker_id,
    is_dist_available_and_initialized,
)

__all__ = [
    "get_rank",
    "get_worker_id",
    "is_dist_available_and_initialized",
]
