"""Fetch-by-handle lifecycle for the quick view.

Only the most recently requested handle may change state. Every request bumps
a generation number; a completion is applied only while its generation is still
current, so a late response for a superseded handle is dropped even when the
transport ignored the cancellation.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .models import ProductDetail

logger = logging.getLogger(__name__)

FetchProduct = Callable[[str], Awaitable[Optional[ProductDetail]]]


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class LoadState:
    status: LoadStatus = LoadStatus.IDLE
    handle: Optional[str] = None
    product: Optional[ProductDetail] = None
    error: Optional[str] = None

    @property
    def is_not_found(self) -> bool:
        return self.status is LoadStatus.READY and self.product is None


def threaded(fetch: Callable[[str], Optional[ProductDetail]]) -> FetchProduct:
    """Wraps a blocking fetch (e.g. the requests client) so it runs off the event loop."""
    async def fetch_in_thread(handle: str) -> Optional[ProductDetail]:
        return await asyncio.to_thread(fetch, handle)
    return fetch_in_thread


class ProductLoader:
    def __init__(self, fetch_product: FetchProduct,
                 on_change: Optional[Callable[[LoadState], None]] = None):
        self._fetch_product = fetch_product
        self._on_change = on_change
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._state = LoadState()

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def request(self, handle: Optional[str]) -> LoadState:
        """
        Makes `handle` the current request. None clears state synchronously.
        Re-requesting the handle already in flight keeps the running fetch;
        re-requesting a settled handle fetches it again (explicit retry).
        """
        if handle is not None and handle == self._state.handle and self._state.status is LoadStatus.LOADING:
            return self._state

        self._supersede()

        if handle is None:
            self._set_state(LoadState())
            return self._state

        generation = self._generation
        self._set_state(LoadState(status=LoadStatus.LOADING, handle=handle))
        self._task = asyncio.get_running_loop().create_task(self._run(generation, handle))
        return self._state

    def cancel(self) -> None:
        """Abandons in-flight work when the consumer goes away."""
        was_loading = self._state.status is LoadStatus.LOADING
        self._supersede()
        if was_loading:
            self._set_state(LoadState())

    async def settle(self) -> LoadState:
        """Waits until the current request (if any) has completed or been cancelled."""
        while self._task is not None and not self._task.done():
            await asyncio.wait([self._task])
        return self._state

    def _supersede(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            logger.debug("🔄 Cancelling fetch for %s", self._state.handle)
            self._task.cancel()
        self._task = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _run(self, generation: int, handle: str) -> None:
        try:
            product = await self._fetch_product(handle)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._is_current(generation):
                return
            logger.error("❌ Failed to load product %s: %s", handle, e)
            self._set_state(LoadState(status=LoadStatus.ERROR, handle=handle, error=str(e) or type(e).__name__))
            return

        if not self._is_current(generation):
            logger.debug("Dropping stale response for %s", handle)
            return

        if product is None:
            logger.info("⚠️ Product %s not found", handle)
        self._set_state(LoadState(status=LoadStatus.READY, handle=handle, product=product))

    def _set_state(self, state: LoadState) -> None:
        self._state = state
        if self._on_change is not None:
            self._on_change(state)
