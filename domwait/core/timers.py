"""
周期タイマー — イベントループ上の定期起床源

loop.call_later を都度張り直して一定間隔でコールバックを呼ぶ。
cancel() 以降はコールバックが呼ばれないことを保証する。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IntervalTimer:
    """interval_ms ごとに callback を呼ぶ周期タイマー。"""

    def __init__(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self._interval = interval_ms / 1000.0
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled

    def start(self) -> None:
        if self._cancelled:
            raise RuntimeError("キャンセル済みのタイマーは再開できません")
        if self._handle is None:
            self._schedule()

    def cancel(self) -> None:
        """以降の tick を止める。何度呼んでもよい。"""
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._tick)

    def _tick(self) -> None:
        if self._cancelled:
            return
        self.ticks += 1
        # 次回分を先に予約し、コールバック内で cancel() されても打ち消せるようにする
        self._schedule()
        self._callback()
