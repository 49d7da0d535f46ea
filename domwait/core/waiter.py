"""
条件待機エンジン — 非同期の状態変化にアサーションを同期させる

固定 sleep を使わずに、条件関数が成功するまで再評価を繰り返す。

再評価のきっかけ（起床源）:
  - 周期タイマー（interval_ms ごと）
  - scope 配下の変更通知（ChangeSignal）

判定ルール:
  - 条件関数が truthy な値を返した最初の試行で成功として確定する
  - 例外を送出した試行は失敗として記録され、次の起床で再評価される
  - falsy な値は失敗ではない。エラーを記録せず、次の起床まで待機を続ける
  - 条件関数が awaitable を返した場合、それが確定するまで次の試行は開始しない
    （保留中に届いた起床は「空いたら 1 回だけ再試行」に合流する）

確定（成功・タイムアウト・キャンセル）時にはタイマー・購読・実行中の試行を必ず 1 回だけ解放する。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ..config import WaitConfig, resolve_config
from .signal import ChangeSignal
from .timeout import TimeoutController, build_timeout_error
from .timers import IntervalTimer

logger = logging.getLogger(__name__)

T = TypeVar("T")

Condition = Callable[[], Union[T, Awaitable[T]]]


# ---------------------------------------------------------------------------
# ConditionWaiter 本体
# ---------------------------------------------------------------------------

class ConditionWaiter:
    """1 回分の条件待機を管理するハンドル。再利用はできない。

    使用例::

        waiter = ConditionWaiter(lambda: doc.get_by_test_id("ok"), config)
        element = await waiter.wait()
    """

    def __init__(self, condition: Condition, config: WaitConfig) -> None:
        if not callable(condition):
            raise TypeError(
                f"条件には呼び出し可能オブジェクトを指定してください: {type(condition).__name__}"
            )
        self.config = config
        self.attempts = 0
        self.last_error: Optional[BaseException] = None

        self._condition = condition
        self._future: Optional[asyncio.Future] = None
        self._pending: Optional[asyncio.Future] = None
        self._owns_pending = False
        self._retry_requested = False
        self._cleaned_up = False

        self._interval = IntervalTimer(config.interval_ms, self.request_attempt)
        self._timeout = TimeoutController(config.timeout_ms, self._handle_timeout)
        self._signal = ChangeSignal.for_scope(
            config.scope, config.observation, config.change_source,
        )

    # -------------------------------------------------------------------
    # 状態参照
    # -------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._future is not None

    @property
    def settled(self) -> bool:
        return self._future is not None and self._future.done()

    @property
    def attempt_in_flight(self) -> bool:
        return self._pending is not None

    @property
    def timer_ticks(self) -> int:
        return self._interval.ticks

    @property
    def subscribed(self) -> bool:
        return self._signal.subscribed

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    async def wait(self) -> Any:
        """条件が成功するまで待機し、成功時の値を返す。

        Returns:
            条件関数が最初に返した truthy な値

        Raises:
            WaitTimeoutError: 期限内に成功しなかった場合（on_timeout で差し替え可能）
            asyncio.CancelledError: 呼び出し元または cancel() によって中断された場合
            RuntimeError: 同じ ConditionWaiter で wait() を 2 回呼んだ場合
        """
        if self._future is not None:
            raise RuntimeError("ConditionWaiter は再利用できません")
        self._future = asyncio.get_running_loop().create_future()

        try:
            self._timeout.start()
            self._interval.start()
            self._signal.subscribe(self.request_attempt)
            # 最初の試行はタイマーを待たずに即座に行う
            self._run_attempt()
            return await self._future
        finally:
            self._cleanup()

    def cancel(self) -> bool:
        """待機を中断する。既に確定していれば False を返す。"""
        if self._future is None or self._future.done():
            return False
        self._future.cancel()
        self._cleanup()
        return True

    def request_attempt(self) -> None:
        """起床源からの再評価要求。試行中なら 1 回分の再試行要求として保留する。"""
        if self._future is None or self._future.done():
            return
        if self._pending is not None:
            self._retry_requested = True
            return
        self._run_attempt()

    # -------------------------------------------------------------------
    # 試行
    # -------------------------------------------------------------------

    def _run_attempt(self) -> None:
        self.attempts += 1
        self._retry_requested = False
        try:
            result = self._condition()
        except Exception as exc:
            self._record_failure(exc)
            return

        if inspect.isawaitable(result):
            self._owns_pending = asyncio.iscoroutine(result)
            pending = asyncio.ensure_future(result)
            self._pending = pending
            pending.add_done_callback(self._on_pending_done)
            return

        self._accept_value(result)

    def _on_pending_done(self, pending: asyncio.Future) -> None:
        if pending is not self._pending:
            return
        self._pending = None

        if pending.cancelled():
            if self.settled:
                return
            self._record_failure(asyncio.CancelledError("試行がキャンセルされました"))
        else:
            exc = pending.exception()
            if self.settled:
                return
            if exc is None:
                self._accept_value(pending.result())
            elif isinstance(exc, Exception):
                self._record_failure(exc)
            else:
                self._settle_exception(exc)

        if self._retry_requested and not self.settled:
            logger.debug("保留中に届いた起床要求により再試行します")
            self._run_attempt()

    def _accept_value(self, value: Any) -> None:
        if value:
            logger.debug("条件が成功しました（試行 %d 回目）", self.attempts)
            self._settle_result(value)
            return
        logger.debug("条件が falsy を返しました（試行 %d 回目）: %r", self.attempts, value)

    def _record_failure(self, exc: BaseException) -> None:
        self.last_error = exc
        logger.debug("試行 %d 回目が失敗しました: %s", self.attempts, exc)

    # -------------------------------------------------------------------
    # 確定とクリーンアップ
    # -------------------------------------------------------------------

    def _handle_timeout(self) -> None:
        if self._future is None or self._future.done():
            return
        try:
            error = build_timeout_error(self.last_error, self.config)
        except Exception as exc:
            error = exc
        logger.info(
            "条件待機がタイムアウトしました（%dms, 試行 %d 回）",
            self.config.timeout_ms, self.attempts,
        )
        self._settle_exception(error)

    def _settle_result(self, value: Any) -> None:
        assert self._future is not None
        if self._future.done():
            return
        self._future.set_result(value)
        self._cleanup()

    def _settle_exception(self, error: BaseException) -> None:
        assert self._future is not None
        if self._future.done():
            return
        self._future.set_exception(error)
        self._cleanup()

    def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self._interval.cancel()
        self._timeout.cancel()
        self._signal.release()
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            if self._owns_pending:
                pending.cancel()
            else:
                # 呼び出し元の Future は中断しない。結果だけ読み捨てる
                pending.add_done_callback(_consume_result)
        logger.debug(
            "条件待機を終了しました（試行 %d 回, タイマー tick %d 回）",
            self.attempts, self._interval.ticks,
        )


def _consume_result(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


# ---------------------------------------------------------------------------
# 関数 API
# ---------------------------------------------------------------------------

async def wait_for(
    condition: Condition,
    *,
    scope: Any = None,
    timeout_ms: Optional[int] = None,
    interval_ms: Optional[int] = None,
    on_timeout: Optional[Callable[[BaseException], BaseException]] = None,
    observation: Any = None,
    change_source: Any = None,
) -> Any:
    """condition が truthy な値を返すまで待機する。

    Args:
        condition: 引数なしの条件関数（値・例外・awaitable のいずれかを返す）
        scope: 変更を監視するサブツリーのルート（省略時はデフォルトのドキュメント）
        timeout_ms: 全体タイムアウト（ミリ秒、デフォルト: 1000）
        interval_ms: ポーリング間隔（ミリ秒、デフォルト: 50）
        on_timeout: タイムアウト例外の変換関数（デフォルト: scope のマークアップを付与）
        observation: 待機を起こす変更の種類（ObservationOptions または辞書）
        change_source: 変更通知の供給元（省略時は scope から自動選択）

    Returns:
        condition が最初に返した truthy な値

    Raises:
        WaitTimeoutError: タイムアウト時間内に成功しなかった場合
        TypeError: condition が呼び出し可能でない場合
    """
    config = resolve_config(
        scope=scope,
        timeout_ms=timeout_ms,
        interval_ms=interval_ms,
        on_timeout=on_timeout,
        observation=observation,
        change_source=change_source,
    )
    return await ConditionWaiter(condition, config).wait()
