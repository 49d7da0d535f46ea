"""
エラー定義 — 待機処理の終端状態を表す例外

条件待機の失敗分類:
  - ConditionFailure: 1 回の試行（Attempt）の失敗。内部で握りつぶされ再試行を駆動する
  - WaitTimeoutError: 期限切れ。最後の試行失敗を保持し、on_timeout で加工されて呼び出し元へ
  - InvalidArgumentError: 削除待機の対象が最初から存在しない場合の即時エラー
"""

from __future__ import annotations

from typing import Optional


class DomWaitError(Exception):
    """domwait が送出する例外の基底クラス。"""


class ConditionFailure(DomWaitError, AssertionError):
    """条件がまだ満たされていないことを表す試行単位の失敗。

    条件関数はこの例外（または任意の Exception）を送出して「まだ」を伝える。
    AssertionError を継承しているため、assert 文の失敗と同じ扱いになる。
    """


class ElementNotFoundError(ConditionFailure):
    """クエリに一致する要素が見つからなかった。"""


class WaitTimeoutError(DomWaitError, TimeoutError):
    """期限内に条件が満たされなかった。

    Attributes:
        last_error: 最後の試行で送出された例外（全試行が falsy だった場合は None）
        timeout_ms: 適用されたタイムアウト（ミリ秒）
    """

    def __init__(
        self,
        message: str,
        *,
        last_error: Optional[BaseException] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.timeout_ms = timeout_ms
        if last_error is not None:
            self.__cause__ = last_error


class InvalidArgumentError(DomWaitError, ValueError):
    """呼び出し側の引数誤り。再試行もタイムアウトも適用されない。"""
