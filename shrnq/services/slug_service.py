# shrnq/services/slug_service.py
"""
Slug allocation and redirect resolution.

Slugs are 5 symbols from [0-9A-Za-z] (62**5, roughly 916M values). Mappings are
permanent: there is no update, TTL or delete path.

Two allocation paths exist:
- ``allocate`` returns a slug that was absent when it was checked. Another
  request can still claim it before the caller writes.
- ``shorten`` reserves and writes in one atomic ``put_if_absent``, so a lost
  race shows up as a collision and the loop simply tries the next candidate.
Both give up with AllocationExhaustedError after ``max_attempts`` candidates.
"""

import logging
from dataclasses import dataclass

from shrnq.core.ids import ALPHANUMERIC, random_id
from shrnq.core.log_utils import sanitize_for_log
from shrnq.db.kv import KVStore
from shrnq.exceptions import AllocationExhaustedError

logger = logging.getLogger(__name__)

SLUG_ALPHABET = ALPHANUMERIC
SLUG_LENGTH = 5
DEFAULT_MAX_ATTEMPTS = 10


def generate_slug() -> str:
    """One independent, uniformly random candidate slug."""
    return random_id(SLUG_LENGTH, SLUG_ALPHABET)


async def allocate(store: KVStore, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> str:
    """Return a slug that had no value in ``store`` at the time of the check."""
    for attempt in range(1, max_attempts + 1):
        candidate = generate_slug()
        if await store.get(candidate) is None:
            return candidate
        logger.debug("Slug collision on attempt %d: %s", attempt, candidate)

    logger.error("No free slug found after %d attempts", max_attempts)
    raise AllocationExhaustedError()


async def shorten(store: KVStore, url: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> str:
    """Store ``url`` under a fresh slug and return the slug."""
    for attempt in range(1, max_attempts + 1):
        candidate = generate_slug()
        if await store.put_if_absent(candidate, url):
            logger.info("Shortened %s as %s", sanitize_for_log(url), candidate)
            return candidate
        logger.debug("Slug collision on attempt %d: %s", attempt, candidate)

    logger.error("No free slug found after %d attempts", max_attempts)
    raise AllocationExhaustedError()


@dataclass(frozen=True)
class RedirectTarget:
    url: str
    status_code: int = 301


async def resolve(store: KVStore, path: str) -> RedirectTarget | None:
    """Look up the destination for a request path; None means not found.

    Read-only: no hit counters or other side effects.
    """
    key = path[1:] if path.startswith("/") else path
    if not key:
        return None
    url = await store.get(key)
    if url is None:
        return None
    return RedirectTarget(url=url)
