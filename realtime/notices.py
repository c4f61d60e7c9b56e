"""
Transient user-facing notices (toasts) with auto-dismiss.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from realtime.timers import LoopScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_NOTICE_DURATION = 3.0


@dataclass
class Notice:
    id: int
    title: str
    description: str
    duration: float


NoticeListener = Callable[[Notice], None]


class NoticeBoard:
    """
    Holds the notices currently on screen. Each notice is dismissed by a
    timer after its duration; listeners are told about every new notice.
    """

    def __init__(self, duration: float = DEFAULT_NOTICE_DURATION, scheduler: Optional[Scheduler] = None):
        self.duration = duration
        self.scheduler = scheduler or LoopScheduler()
        self._active: List[Notice] = []
        self._timers: Dict[int, TimerHandle] = {}
        self._ids = itertools.count(1)
        self._listeners: List[NoticeListener] = []
        self.shown_count = 0

    @property
    def active(self) -> List[Notice]:
        return list(self._active)

    def add_listener(self, listener: NoticeListener):
        self._listeners.append(listener)

    def show(self, title: str, description: str, duration: Optional[float] = None) -> Notice:
        notice = Notice(
            id=next(self._ids),
            title=title,
            description=description,
            duration=self.duration if duration is None else duration,
        )
        self._active.append(notice)
        self.shown_count += 1
        self._timers[notice.id] = self.scheduler.call_later(notice.duration, lambda: self.dismiss(notice.id))
        logger.debug(f"Notice shown: {title} - {description}")

        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error(f"Notice listener failed: {e}", exc_info=True)
        return notice

    def dismiss(self, notice_id: int):
        timer = self._timers.pop(notice_id, None)
        if timer is not None:
            timer.cancel()
        self._active = [n for n in self._active if n.id != notice_id]

    def clear(self):
        for notice_id in list(self._timers):
            self.dismiss(notice_id)
        self._active = []
