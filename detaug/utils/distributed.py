"""Process identity helpers for per-worker random streams.

Each data-loading worker owns one pipeline and therefore one random
stream. These helpers locate the current process (distributed rank) and
the current data-loader worker so seeds can be derived per worker.

Example:
    >>> from detaug.utils.distributed import get_rank, get_worker_id
    >>> seed = base_seed + get_rank() * 1024 + get_worker_id()
"""

import torch.distributed as dist
from torch.utils.data import get_worker_info


def is_dist_available_and_initialized() -> bool:
    """Check if distributed training is available and initialized.
    
    Returns:
        True if distributed is available and initialized.
    """
    if not dist.is_available():
        return False
    if not dist.is_initialized():
        return False
    return True


def get_rank() -> int:
    """Get the rank of the current process.
    
    Returns:
        Process rank (0 if not distributed).
    """
    if not is_dist_available_and_initialized():
        return 0
    return dist.get_rank()


def get_worker_id() -> int:
    """Get the index of the current data-loader worker.
    
    Returns:
        Worker index (0 in the main process).
    """
    info = get_worker_info()
    if info is None:
        return 0
    return info.id
