"""Seeded random stream owned by a single pipeline instance.

A stream is not safe for concurrent use; concurrent workers each build
their own pipeline and therefore their own stream.

Example:
    >>> stream = RandomStream(seed=derive_seed(42))
    >>> offset = stream.next_bounded(77)
"""

import logging
import random
from typing import Optional

from detaug.errors import InvalidArgument
from detaug.utils.distributed import get_rank, get_worker_id

logger = logging.getLogger("detaug.random")

# Values produced by next() lie in [0, RAND_RANGE)
RAND_RANGE = 2 ** 32

# Seed stride between distributed ranks; bounds the worker index
WORKERS_PER_RANK = 1024


def derive_seed(base_seed: int, worker_id: Optional[int] = None) -> int:
    """Derive a per-worker seed from an experiment seed.

    The distributed rank and the data-loader worker index are folded into
    the base seed as ``rank * WORKERS_PER_RANK + worker_id``, so no two
    workers share a stream whatever the loader sizes of the ranks.

    Args:
        base_seed: Global experiment seed.
        worker_id: Worker index. Defaults to the current data-loader worker.

    Returns:
        Seed in [0, 2**32).

    Raises:
        InvalidArgument: If ``worker_id`` is outside [0, WORKERS_PER_RANK).
    """
    if worker_id is None:
        worker_id = get_worker_id()
    if not 0 <= worker_id < WORKERS_PER_RANK:
        raise InvalidArgument(f"worker_id must be in [0, {WORKERS_PER_RANK}), got {worker_id}")
    index = get_rank() * WORKERS_PER_RANK + worker_id
    return (base_seed + index) % RAND_RANGE


class RandomStream:
    """Uniform unsigned integers from a seeded generator.

    Args:
        seed: Seed for the generator. ``None`` seeds from system entropy.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random()
        self.seeded_init(seed)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def seeded_init(self, seed: Optional[int]) -> None:
        """Reset the generator state from ``seed``."""
        self._seed = seed
        self._rng.seed(seed)
        logger.debug(f"Random stream initialized with seed {seed}")

    def next(self) -> int:
        """Uniform integer over [0, 2**32)."""
        return self._rng.getrandbits(32)

    def next_bounded(self, n: int) -> int:
        """Uniform integer over [0, n).

        Raises:
            InvalidArgument: If ``n <= 0``.
        """
        if n <= 0:
            raise InvalidArgument(f"Random bound must be positive, got {n}")
        return self.next() % n

    def uniform(self, lower: float, upper: float) -> float:
        """Uniform float over [lower, upper] derived from ``next()``."""
        if lower > upper:
            raise InvalidArgument(f"Empty range [{lower}, {upper}]")
        if lower == upper:
            return lower
        return lower + (upper - lower) * (self.next() / (RAND_RANGE - 1))

    def bernoulli(self, p: float) -> bool:
        """True with probability ``p``."""
        if p <= 0.0:
            return False
        if p >= 1.0:
            return True
        return self.next() / RAND_RANGE < p

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(seed={self._seed})"
