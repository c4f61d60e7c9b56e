"""
Client viewport state: whether the app is foregrounded and which page it shows.

The event channel only reconnects while the viewport is visible, and the
dispatcher reads the current path to decide whether to surface a notice.
"""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

VisibilityListener = Callable[[bool], None]


class Viewport:
    def __init__(self, visible: bool = True, path: str = "/"):
        self._visible = visible
        self._path = path
        self._listeners: List[VisibilityListener] = []

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def path(self) -> str:
        return self._path

    def navigate(self, path: str):
        self._path = path

    def add_visibility_listener(self, listener: VisibilityListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_visibility_listener(self, listener: VisibilityListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_visible(self, visible: bool):
        """Update visibility and notify listeners when it changes."""
        if visible == self._visible:
            return
        self._visible = visible
        for listener in list(self._listeners):
            try:
                listener(visible)
            except Exception as e:
                logger.error(f"Visibility listener failed: {e}", exc_info=True)
