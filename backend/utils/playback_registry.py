"""
Preview playback exclusivity for the presentation layer.

At most one item per media kind plays at a time: starting a video preview
stops the previous video preview but leaves audio alone. The timeline
engines know nothing about playback.
"""

import logging

logger = logging.getLogger(__name__)


class PlaybackRegistry:
    def __init__(self):
        self._active: dict[str, str] = {}

    def play(self, item_id: str, kind: str) -> str | None:
        """
        Mark ``item_id`` as playing for ``kind``.

        Returns the id that was stopped to make room, if any.
        """
        previous = self._active.get(kind)
        self._active[kind] = item_id
        if previous is not None and previous != item_id:
            logger.debug(f"Stopped {kind} preview {previous} for {item_id}")
            return previous
        return None

    def stop(self, item_id: str) -> bool:
        for kind, active_id in list(self._active.items()):
            if active_id == item_id:
                del self._active[kind]
                return True
        return False

    def stop_all(self) -> None:
        self._active.clear()

    def active(self, kind: str) -> str | None:
        return self._active.get(kind)

    def is_playing(self, item_id: str) -> bool:
        return item_id in self._active.values()
