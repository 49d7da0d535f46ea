"""
変更シグナル — scope の変更を「再評価を検討せよ」という通知に変換する

このモジュールは条件ロジックを持たない。外部の変更監視機能を購読し、
変更のバッチごとに最大 1 回 on_change を呼ぶだけである。

主な機能:
  - ChangeSource: subscribe(scope, options, on_change) -> Subscription を持つプロトコル
  - Subscription: release() で以降の通知を止めるハンドル（冪等）
  - DomChangeSource: インメモリ DOM の MutationObserver による実装
  - ChangeSignal: scope に応じて ChangeSource を選び購読を管理する
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from ..config import ObservationOptions

logger = logging.getLogger(__name__)

OnChange = Callable[[], None]


# ---------------------------------------------------------------------------
# プロトコル
# ---------------------------------------------------------------------------

@runtime_checkable
class Subscription(Protocol):
    """購読ハンドル。release() は何度呼んでもよい。"""

    def release(self) -> None: ...


@runtime_checkable
class ChangeSource(Protocol):
    """scope 配下の変更を通知する外部機能。"""

    def subscribe(
        self, scope: Any, options: ObservationOptions, on_change: OnChange
    ) -> Subscription: ...


class _NullSubscription:
    """何も購読していないハンドル。"""

    def release(self) -> None:
        return None


# ---------------------------------------------------------------------------
# インメモリ DOM 実装
# ---------------------------------------------------------------------------

class _DomSubscription:
    def __init__(self, on_change: OnChange) -> None:
        self.observer: Any = None
        self._on_change: Optional[OnChange] = on_change

    @property
    def released(self) -> bool:
        return self._on_change is None

    def release(self) -> None:
        if self._on_change is None:
            return
        self._on_change = None
        if self.observer is not None:
            self.observer.disconnect()

    def _notify(self, records: list, observer: Any) -> None:
        # disconnect 済みでも配送予約が残っている可能性があるため再確認する
        if self._on_change is None:
            return
        logger.debug("scope の変更を検知しました（%d 件）", len(records))
        self._on_change()


class DomChangeSource:
    """domwait.dom の MutationObserver を使う ChangeSource。"""

    def subscribe(
        self, scope: Any, options: ObservationOptions, on_change: OnChange
    ) -> _DomSubscription:
        from ..dom import MutationObserver

        subscription = _DomSubscription(on_change)
        subscription.observer = MutationObserver(subscription._notify)
        subscription.observer.observe(scope, options)
        return subscription


# ---------------------------------------------------------------------------
# ChangeSignal
# ---------------------------------------------------------------------------

class ChangeSignal:
    """scope に対する購読を 1 つだけ保持し、解放を保証する。"""

    def __init__(
        self,
        scope: Any,
        options: ObservationOptions,
        source: Optional[ChangeSource],
    ) -> None:
        self.scope = scope
        self.options = options
        self.source = source
        self._subscription: Optional[Subscription] = None

    @classmethod
    def for_scope(
        cls,
        scope: Any,
        options: ObservationOptions,
        source: Optional[ChangeSource] = None,
    ) -> ChangeSignal:
        """scope に適した ChangeSource を選んで ChangeSignal を作る。

        明示的な source > インメモリ DOM のノード > なし（タイマーのみ）の順に選ぶ。
        """
        if source is None and scope is not None:
            from ..dom import Node

            if isinstance(scope, Node):
                source = DomChangeSource()
        if source is None:
            logger.debug("変更通知の供給元がありません。タイマーのみで待機します")
        return cls(scope, options, source)

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def subscribe(self, on_change: OnChange) -> None:
        if self._subscription is not None:
            raise RuntimeError("ChangeSignal は既に購読中です")
        if self.source is None:
            self._subscription = _NullSubscription()
            return
        self._subscription = self.source.subscribe(self.scope, self.options, on_change)

    def release(self) -> None:
        """購読を解放する。何度呼んでもよい。"""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.release()
