"""
domwait — UI テスト向けの非同期条件待機

固定 sleep を使わずに、アサーションを非同期の状態変化（ネットワーク応答、
アニメーション、再描画）に同期させる。

主な構成:
  - core.waiter: 条件待機エンジン（wait_for）
  - core.removal: 削除待機（wait_for_removal）
  - core.signal: 変更通知の購読
  - core.timeout: 全体期限とタイムアウト例外の組み立て
  - config: 待機設定とデフォルト値
  - dom: インメモリ DOM（MutationObserver・シリアライザ付き）
  - adapters.page: Playwright ページ上の変更通知
"""

from __future__ import annotations

from .config import (
    ObservationOptions,
    WaitConfig,
    WaitDefaults,
    configure,
    get_defaults,
    reset_defaults,
)
from .core import ConditionWaiter, wait_for, wait_for_removal
from .errors import (
    ConditionFailure,
    DomWaitError,
    ElementNotFoundError,
    InvalidArgumentError,
    WaitTimeoutError,
)

__all__ = [
    "ConditionFailure",
    "ConditionWaiter",
    "DomWaitError",
    "ElementNotFoundError",
    "InvalidArgumentError",
    "ObservationOptions",
    "WaitConfig",
    "WaitDefaults",
    "WaitTimeoutError",
    "configure",
    "get_defaults",
    "reset_defaults",
    "wait_for",
    "wait_for_removal",
]
