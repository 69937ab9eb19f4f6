"""Single-settlement outcome for operations raced by several events."""

import asyncio
import logging
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Settlement(Generic[T]):
    """An outcome that can be settled exactly once.

    Several sources (a connect task finishing, an error, a timer) may try to
    settle the same operation. The first one wins; later attempts return
    False and are otherwise ignored.

    Must be created inside a running event loop.
    """

    def __init__(self, label: str = "operation"):
        self.label = label
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, value: T) -> bool:
        """Settle with a result. Returns False if already settled."""
        if self._future.done():
            logger.debug("Late result discarded: %s", self.label)
            return False
        self._future.set_result(value)
        return True

    def reject(self, exc: BaseException) -> bool:
        """Settle with an exception. Returns False if already settled."""
        if self._future.done():
            logger.debug("Late error discarded: %s (%s)", self.label, exc)
            return False
        self._future.set_exception(exc)
        return True

    def __await__(self) -> Any:
        return self._future.__await__()
