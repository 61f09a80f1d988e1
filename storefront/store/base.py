"""
Reactive state containers shared by the cart and wishlist stores.

A store owns an ordered list of rows, a loading flag and the last gateway
error. Only the store's own actions mutate it; subscribers are called after
every change. Execution is single-threaded asyncio, so there is no locking:
overlapping actions interleave at gateway awaits and the last re-fetch to
resolve wins.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, List, Optional, TypeVar

from storefront.errors import GatewayError
from storefront.notifications import Notifier
from storefront.utils.logger import get_logger

logger = get_logger("store")

ItemT = TypeVar("ItemT")
Listener = Callable[[Any], None]


class ReactiveStore(Generic[ItemT]):
    name = "store"

    def __init__(self, gateway: Any, notifier: Notifier) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self.items: List[ItemT] = []
        self.error: Optional[GatewayError] = None
        self._pending = 0
        self._listeners: List[Listener] = []

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(store) after every state change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> List[ItemT]:
        return list(self.items)

    def reset(self) -> None:
        """Drop all local state (sign-out); nothing is sent to the backend."""
        self._set(items=[], error=None)

    def _set(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self, key, value)
        for listener in list(self._listeners):
            listener(self)

    @asynccontextmanager
    async def _loading(self) -> AsyncIterator[None]:
        self._pending += 1
        self._set()
        try:
            yield
        finally:
            self._pending -= 1
            self._set()

    async def _refresh(
        self,
        fetch: Callable[[], Awaitable[List[ItemT]]],
        clear_error: bool = True,
    ) -> bool:
        """Replace items with the authoritative list; on failure keep state and record the error."""
        async with self._loading():
            try:
                items = await fetch()
            except GatewayError as e:
                logger.warning("%s: refresh failed error=%s", self.name, e)
                self._set(error=e)
                return False
            if clear_error:
                self._set(items=items, error=None)
            else:
                self._set(items=items)
            return True


async def optimistic_update(
    store: ReactiveStore[ItemT],
    apply: Callable[[List[ItemT]], List[ItemT]],
    effect: Callable[[], Awaitable[Any]],
    reconcile: Optional[Callable[[], Awaitable[Any]]] = None,
    on_rollback: Optional[Callable[[], Awaitable[Any]]] = None,
) -> bool:
    """
    Snapshot, apply the speculative transition, run the remote effect.

    On success the optional reconcile step (normally an authoritative
    re-fetch) runs. On GatewayError the snapshot is restored, the error is
    recorded on the store, on_rollback runs, and False is returned. The
    gateway has already notified the user by then.
    """
    snapshot = store.snapshot()
    async with store._loading():
        store._set(items=apply(snapshot))
        try:
            await effect()
        except GatewayError as e:
            logger.info("%s: rolling back error=%s", store.name, e)
            store._set(items=snapshot, error=e)
            if on_rollback is not None:
                await on_rollback()
            return False
        store._set(error=None)
        if reconcile is not None:
            await reconcile()
        return True
