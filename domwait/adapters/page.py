"""
Playwright アダプタ — ブラウザページ上の変更通知を待機エンジンへ中継する

ページ内に MutationObserver を設置し、変更バッチごとに expose_function で
公開した Python 関数を呼び戻す。これを ChangeSource として wait_for() に渡すと、
実ブラウザの DOM 変更でも待機が早期に起床する。

主な機能:
  - PageChangeSource: ページ内 MutationObserver による ChangeSource 実装
  - handle_is_connected: ElementHandle の isConnected を返す非同期の存在判定
  - wait_for_in_page / wait_for_removal_in_page: ページ向けの簡易ラッパー
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import weakref
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Optional

from ..config import ObservationOptions
from ..core.removal import wait_for_removal
from ..core.waiter import wait_for

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)

DEFAULT_BINDING = "__domwaitNotify"

# ---------------------------------------------------------------------------
# ページ内で実行するスクリプト
# ---------------------------------------------------------------------------

_OBSERVE_SCRIPT = """
([root, options, id, binding]) => {
  const registry = (window.__domwaitObservers = window.__domwaitObservers || {});
  const observer = new MutationObserver(() => window[binding](id));
  observer.observe(root || document, options);
  registry[id] = observer;
}
"""

_DISCONNECT_SCRIPT = """
(id) => {
  const registry = window.__domwaitObservers || {};
  if (registry[id]) {
    registry[id].disconnect();
    delete registry[id];
  }
}
"""

_IS_CONNECTED_SCRIPT = "el => el.isConnected"


# ---------------------------------------------------------------------------
# 購読ハンドル
# ---------------------------------------------------------------------------

class _PageSubscription:
    def __init__(self, source: PageChangeSource, sub_id: int, install: asyncio.Task) -> None:
        self._source = source
        self.sub_id = sub_id
        self._install = install

    def release(self) -> None:
        self._source._release(self.sub_id, self._install)


# ---------------------------------------------------------------------------
# PageChangeSource 本体
# ---------------------------------------------------------------------------

class PageChangeSource:
    """Playwright の Page 上で動く ChangeSource。

    使用例::

        source = PageChangeSource.for_page(page)
        await source.install()
        await wait_for(check_banner, change_source=source, timeout_ms=3000)
    """

    _by_page: "weakref.WeakKeyDictionary[Any, PageChangeSource]" = weakref.WeakKeyDictionary()

    @classmethod
    def for_page(cls, page: Page) -> PageChangeSource:
        """page ごとに 1 つの PageChangeSource を返す。通知関数の二重公開を避ける。"""
        source = cls._by_page.get(page)
        if source is None:
            source = cls(page)
            cls._by_page[page] = source
        return source

    def __init__(self, page: Page, binding_name: str = DEFAULT_BINDING) -> None:
        self._page = page
        self._binding = binding_name
        self._installed = False
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def active_subscriptions(self) -> int:
        return len(self._callbacks)

    async def install(self) -> None:
        """通知用の関数をページへ公開する。2 回目以降は何もしない。"""
        if self._installed:
            return
        await self._page.expose_function(self._binding, self._dispatch)
        self._installed = True
        logger.debug("ページへ通知関数 %s を公開しました", self._binding)

    def subscribe(
        self, scope: Any, options: ObservationOptions, on_change: Callable[[], None]
    ) -> _PageSubscription:
        """scope（ElementHandle、または None でドキュメント全体）の監視を開始する。

        ページ内への設置は非同期タスクとして行われ、完了前の変更は通知されない。
        """
        if not self._installed:
            raise RuntimeError("PageChangeSource.install() を先に呼び出してください")
        # ElementHandle 以外（インメモリ DOM のノード等）はドキュメント全体として扱う
        root = scope if scope is not None and hasattr(scope, "evaluate") else None

        sub_id = next(self._ids)
        self._callbacks[sub_id] = on_change
        install = self._spawn(self._page.evaluate(
            _OBSERVE_SCRIPT, [root, options.to_js(), sub_id, self._binding],
        ))
        return _PageSubscription(self, sub_id, install)

    async def drain(self) -> None:
        """実行中の設置・切断タスクの完了を待つ。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _dispatch(self, sub_id: int) -> None:
        callback = self._callbacks.get(sub_id)
        if callback is None:
            return
        callback()

    def _release(self, sub_id: int, install: asyncio.Task) -> None:
        if self._callbacks.pop(sub_id, None) is None:
            return
        self._spawn(self._disconnect(sub_id, install))

    async def _disconnect(self, sub_id: int, install: asyncio.Task) -> None:
        # 設置が終わる前に切断すると observer が残るため、設置の完了を待つ
        await asyncio.wait({install})
        if install.cancelled() or install.exception() is not None:
            return
        if self._page.is_closed():
            return
        await self._page.evaluate(_DISCONNECT_SCRIPT, sub_id)

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("ページ内 MutationObserver の操作に失敗しました: %s", exc)


# ---------------------------------------------------------------------------
# 存在判定・ラッパー
# ---------------------------------------------------------------------------

async def handle_is_connected(handle: ElementHandle) -> bool:
    """ElementHandle がページのドキュメントから到達可能かを返す。"""
    return bool(await handle.evaluate(_IS_CONNECTED_SCRIPT))


async def wait_for_in_page(
    page: Page,
    condition: Callable[[], Any],
    *,
    scope: Optional[ElementHandle] = None,
    **options: Any,
) -> Any:
    """ページの DOM 変更で起床する wait_for()。"""
    source = PageChangeSource.for_page(page)
    await source.install()
    return await wait_for(condition, scope=scope, change_source=source, **options)


def wait_for_removal_in_page(
    page: Page,
    target: Any,
    *,
    scope: Optional[ElementHandle] = None,
    **options: Any,
) -> Awaitable[None]:
    """ElementHandle がページから取り除かれるまで待機する awaitable を返す。

    対象の検証は wait_for_removal() と同じく呼び出し時点で同期的に行われ、
    通知関数の公開（install）は await 後に行われる。

    Raises:
        InvalidArgumentError: 対象が None または空の場合（即座に送出）
    """
    source = PageChangeSource.for_page(page)
    removal = wait_for_removal(
        target,
        scope=scope,
        change_source=source,
        is_present=handle_is_connected,
        **options,
    )
    return _install_then_wait(source, removal)


async def _install_then_wait(source: PageChangeSource, removal: Coroutine[Any, Any, None]) -> None:
    try:
        await source.install()
    except BaseException:
        removal.close()
        raise
    await removal
