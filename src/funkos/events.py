"""Subscribe/notify helper shared by the state containers."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ChangeNotifier:
    """
    Fire-and-forget change notification.

    Listeners receive no payload: they are expected to re-read the current
    state of the container they subscribed to. A failing listener is logged
    and does not stop delivery to the others.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s listener failed", self.name)

    def __len__(self) -> int:
        return len(self._listeners)
