import os
import tempfile
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator

from filelock import FileLock, Timeout

from storefront.config import settings
from storefront.errors import StorageError


def _locks_dir() -> str:
    path = os.path.join(tempfile.gettempdir(), "storefront_locks")
    os.makedirs(path, exist_ok=True)
    return path


@contextmanager
def product_locks(product_ids: Iterable[int], timeout: float = None) -> Iterator[None]:
    """
    Hold a cross-process lock for every product id while the block runs.

    Locks are taken in ascending id order so two checkouts touching the same
    products can never wait on each other in a cycle.
    """
    timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    lock_dir = _locks_dir()
    with ExitStack() as stack:
        for pid in sorted(set(product_ids)):
            lock = FileLock(os.path.join(lock_dir, f"product_{pid}.lock"))
            try:
                stack.enter_context(lock.acquire(timeout=timeout))
            except Timeout:
                raise StorageError(
                    "Could not acquire stock lock; try again", identifier=pid
                )
        yield
