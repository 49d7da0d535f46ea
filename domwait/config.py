"""
待機設定 — 環境変数・configure() からのデフォルト値と呼び出し単位の設定解決

デフォルト値は 呼び出し引数 > configure() > 環境変数 > 組み込み値 の優先順位で適用される。
WaitConfig は待機開始前に完全に解決され、待機中に変更されることはない（frozen）。

環境変数一覧:
  DOMWAIT_TIMEOUT_MS        : 全体タイムアウト（ミリ秒, デフォルト: 1000）
  DOMWAIT_INTERVAL_MS       : ポーリング間隔（ミリ秒, デフォルト: 50）
  DOMWAIT_DEBUG_PRINT_LIMIT : タイムアウト時に出力するマークアップの最大文字数（デフォルト: 7000）
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_TIMEOUT_MS = "DOMWAIT_TIMEOUT_MS"
_ENV_INTERVAL_MS = "DOMWAIT_INTERVAL_MS"
_ENV_DEBUG_PRINT_LIMIT = "DOMWAIT_DEBUG_PRINT_LIMIT"

OnTimeout = Callable[[BaseException], BaseException]


# ---------------------------------------------------------------------------
# 変更監視オプション
# ---------------------------------------------------------------------------

class ObservationOptions(BaseModel):
    """どの種類の変更で待機を起こすかを指定する。

    フィールド名は snake_case、ブラウザの MutationObserverInit へは
    model_dump(by_alias=True) で camelCase として渡す。
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True,
    )

    child_list: bool = Field(default=True, description="子ノード（テキスト含む）の追加・削除")
    attributes: bool = Field(default=True, description="属性値の変更")
    character_data: bool = Field(default=True, description="テキスト内容の変更")
    subtree: bool = Field(default=True, description="子孫ノードまで再帰的に監視するか")
    attribute_filter: Optional[tuple[str, ...]] = Field(
        default=None, description="監視する属性名（None は全属性）",
    )

    def to_js(self) -> dict[str, Any]:
        """ブラウザの MutationObserver.observe() に渡す辞書を返す。"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# 呼び出し単位の設定
# ---------------------------------------------------------------------------

class WaitConfig(BaseModel):
    """1 回の待機に適用される解決済み設定。

    Attributes:
        scope: 監視・診断対象のサブツリーのルート（None はタイマーのみで待機）
        timeout_ms: 全体タイムアウト（ミリ秒）
        interval_ms: ポーリング間隔（ミリ秒）
        on_timeout: タイムアウト時の例外を差し替える変換関数
        observation: 待機を起こす変更の種類
        change_source: 変更通知の供給元（None は scope から自動選択）
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    scope: Any = None
    timeout_ms: int = Field(default=1000, gt=0)
    interval_ms: int = Field(default=50, gt=0)
    on_timeout: OnTimeout
    observation: ObservationOptions = Field(default_factory=ObservationOptions)
    change_source: Any = None


# ---------------------------------------------------------------------------
# プロセス全体のデフォルト値
# ---------------------------------------------------------------------------

@dataclass
class WaitDefaults:
    """設定が省略された場合に使われる値。

    Attributes:
        timeout_ms: 全体タイムアウト（ミリ秒）
        interval_ms: ポーリング間隔（ミリ秒）
        debug_print_limit: 診断マークアップの最大文字数
        document: scope 省略時に監視するドキュメント
    """

    timeout_ms: int = 1000
    interval_ms: int = 50
    debug_print_limit: int = 7000
    document: Any = None


def _parse_positive_int(key: str, default: int) -> int:
    raw = os.environ[key]
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return default
    if value <= 0:
        logger.warning("%s は正の整数である必要があります: %s", key, raw)
        return default
    return value


def load_defaults_from_env() -> WaitDefaults:
    """環境変数から WaitDefaults を生成する。

    設定されていない環境変数や不正な値は組み込みのデフォルト値を使用する。

    Returns:
        環境変数から読み込んだデフォルト値
    """
    defaults = WaitDefaults()

    if _ENV_TIMEOUT_MS in os.environ:
        defaults.timeout_ms = _parse_positive_int(_ENV_TIMEOUT_MS, defaults.timeout_ms)

    if _ENV_INTERVAL_MS in os.environ:
        defaults.interval_ms = _parse_positive_int(_ENV_INTERVAL_MS, defaults.interval_ms)

    if _ENV_DEBUG_PRINT_LIMIT in os.environ:
        defaults.debug_print_limit = _parse_positive_int(
            _ENV_DEBUG_PRINT_LIMIT, defaults.debug_print_limit,
        )

    logger.debug("待機デフォルト値を読み込みました: %s", defaults)
    return defaults


_defaults: Optional[WaitDefaults] = None


def get_defaults() -> WaitDefaults:
    """現在のデフォルト値を返す。初回呼び出し時に環境変数から読み込む。"""
    global _defaults
    if _defaults is None:
        _defaults = load_defaults_from_env()
    return _defaults


def configure(**changes: Any) -> WaitDefaults:
    """デフォルト値を部分的に上書きする。

    使用例::

        configure(timeout_ms=3000, document=doc)

    Raises:
        TypeError: WaitDefaults に存在しないキーが指定された場合
    """
    global _defaults
    _defaults = dataclasses.replace(get_defaults(), **changes)
    logger.info("待機デフォルト値を更新しました: %s", sorted(changes))
    return _defaults


def reset_defaults() -> None:
    """configure() による変更を破棄する。次回参照時に環境変数から再読み込みされる。"""
    global _defaults
    _defaults = None


# ---------------------------------------------------------------------------
# 設定解決
# ---------------------------------------------------------------------------

def resolve_config(
    *,
    scope: Any = None,
    timeout_ms: Optional[int] = None,
    interval_ms: Optional[int] = None,
    on_timeout: Optional[OnTimeout] = None,
    observation: Any = None,
    change_source: Any = None,
    defaults: Optional[WaitDefaults] = None,
) -> WaitConfig:
    """省略された項目をデフォルト値で補い、WaitConfig を生成する。

    Args:
        scope: 監視対象のルート（省略時は defaults.document）
        timeout_ms: 全体タイムアウト（ミリ秒）
        interval_ms: ポーリング間隔（ミリ秒）
        on_timeout: タイムアウト例外の変換関数（省略時は scope のマークアップを付与）
        observation: ObservationOptions またはその辞書表現
        change_source: 変更通知の供給元
        defaults: 使用するデフォルト値（省略時は get_defaults()）

    Returns:
        解決済みの WaitConfig

    Raises:
        pydantic.ValidationError: 値が不正な場合（timeout_ms <= 0 等）
    """
    from .core.timeout import default_on_timeout

    defaults = defaults or get_defaults()
    if scope is None:
        scope = defaults.document
    if on_timeout is None:
        on_timeout = functools.partial(
            default_on_timeout, scope=scope, max_length=defaults.debug_print_limit,
        )

    return WaitConfig(
        scope=scope,
        timeout_ms=defaults.timeout_ms if timeout_ms is None else timeout_ms,
        interval_ms=defaults.interval_ms if interval_ms is None else interval_ms,
        on_timeout=on_timeout,
        observation=observation if observation is not None else ObservationOptions(),
        change_source=change_source,
    )
