"""
タイムアウト制御 — 全体期限の管理とタイムアウト例外の組み立て

主な機能:
  - TimeoutController: 単発の期限イベント。待機が先に確定した場合は cancel() で抑止する
  - build_timeout_error: 最後の試行失敗から WaitTimeoutError を作り on_timeout を通す
  - default_on_timeout: scope のマークアップを例外メッセージに付与する既定の変換
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..errors import WaitTimeoutError

if TYPE_CHECKING:
    from ..config import WaitConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 期限イベント
# ---------------------------------------------------------------------------

class TimeoutController:
    """timeout_ms 経過後に一度だけ on_fire を呼ぶ。

    cancel() 後、または一度発火した後は二度と on_fire を呼ばない。
    """

    def __init__(self, timeout_ms: int, on_fire: Callable[[], None]) -> None:
        self.timeout_ms = timeout_ms
        self._on_fire = on_fire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._done = False
        self._fired = False
        self.deadline: Optional[float] = None

    @property
    def fired(self) -> bool:
        return self._fired

    def start(self) -> None:
        if self._handle is not None or self._done:
            raise RuntimeError("TimeoutController は一度しか開始できません")
        loop = asyncio.get_running_loop()
        self.deadline = loop.time() + self.timeout_ms / 1000.0
        self._handle = loop.call_at(self.deadline, self._fire)

    def cancel(self) -> None:
        """期限イベントを抑止する。何度呼んでもよい。"""
        self._done = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def remaining(self) -> float:
        """期限までの残り秒数。未開始なら timeout 全体を返す。"""
        if self.deadline is None:
            return self.timeout_ms / 1000.0
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    def _fire(self) -> None:
        self._handle = None
        if self._done:
            return
        self._done = True
        self._fired = True
        self._on_fire()


# ---------------------------------------------------------------------------
# タイムアウト例外の組み立て
# ---------------------------------------------------------------------------

def build_timeout_error(
    last_error: Optional[BaseException], config: WaitConfig
) -> BaseException:
    """最後の試行失敗から最終的なタイムアウト例外を作る。

    Args:
        last_error: 最後に失敗した試行の例外（なければ None）
        config: 解決済み設定（timeout_ms と on_timeout を使用）

    Returns:
        on_timeout を通した後の例外

    Raises:
        TypeError: on_timeout が例外以外を返した場合
    """
    if last_error is not None and str(last_error):
        message = str(last_error)
    elif last_error is not None:
        message = f"{type(last_error).__name__}（{config.timeout_ms}ms でタイムアウト）"
    else:
        message = f"条件が {config.timeout_ms}ms 以内に満たされませんでした"

    error = WaitTimeoutError(
        message, last_error=last_error, timeout_ms=config.timeout_ms,
    )
    transformed = config.on_timeout(error)
    if not isinstance(transformed, BaseException):
        raise TypeError(
            f"on_timeout は例外を返す必要があります: {type(transformed).__name__}"
        )
    return transformed


def default_on_timeout(
    error: BaseException, *, scope: Any = None, max_length: Optional[int] = 7000
) -> BaseException:
    """scope の現在のマークアップをメッセージに付与した例外を返す。

    scope がインメモリ DOM のノードでない場合は repr を付与し、
    scope がない場合は error をそのまま返す。
    """
    if scope is None:
        return error

    from ..dom import Node, pretty_dom

    if isinstance(scope, Node):
        snapshot = pretty_dom(scope, max_length=max_length)
    else:
        snapshot = repr(scope)

    return WaitTimeoutError(
        f"{error}\n\n{snapshot}",
        last_error=getattr(error, "last_error", None),
        timeout_ms=getattr(error, "timeout_ms", None),
    )
