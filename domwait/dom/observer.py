"""
MutationObserver — インメモリ DOM の変更監視

ブラウザの MutationObserver と同じ形のインターフェースを提供する。
変更レコードはオブザーバーごとにキューへ積まれ、イベントループの
次のターン（loop.call_soon）でまとめてコールバックへ配送される。
同一ターン内の複数の変更は 1 回のコールバックに合流する。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Literal, Optional

from ..config import ObservationOptions

if TYPE_CHECKING:
    from .nodes import Node

logger = logging.getLogger(__name__)

MutationType = Literal["childList", "attributes", "characterData"]


# ---------------------------------------------------------------------------
# MutationRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MutationRecord:
    """1 件の変更内容。

    Attributes:
        type: 変更種別（childList / attributes / characterData）
        target: 変更が発生したノード
        added_nodes: 追加されたノード（childList のみ）
        removed_nodes: 削除されたノード（childList のみ）
        previous_sibling: 変更位置の直前の兄弟
        next_sibling: 変更位置の直後の兄弟
        attribute_name: 変更された属性名（attributes のみ）
        old_value: 変更前の値（attributes / characterData）
    """

    type: MutationType
    target: Node
    added_nodes: tuple[Node, ...] = ()
    removed_nodes: tuple[Node, ...] = ()
    previous_sibling: Optional[Node] = None
    next_sibling: Optional[Node] = None
    attribute_name: Optional[str] = None
    old_value: Optional[str] = None


@dataclass
class _Registration:
    observer: MutationObserver
    target: Node
    options: ObservationOptions = field(default_factory=ObservationOptions)

    def accepts(self, node: Node, record: MutationRecord) -> bool:
        """このオプションで record を受け取るべきかを判定する。"""
        if node is not self.target and not self.options.subtree:
            return False
        if record.type == "childList":
            return self.options.child_list
        if record.type == "characterData":
            return self.options.character_data
        if not self.options.attributes:
            return False
        if self.options.attribute_filter is not None:
            return record.attribute_name in self.options.attribute_filter
        return True


# ---------------------------------------------------------------------------
# MutationObserver 本体
# ---------------------------------------------------------------------------

MutationCallback = Callable[[list[MutationRecord], "MutationObserver"], None]


class MutationObserver:
    """ノードとその子孫の変更を監視し、バッチ単位でコールバックする。

    使用例::

        observer = MutationObserver(lambda records, obs: print(len(records)))
        observer.observe(document.body, ObservationOptions())
        ...
        observer.disconnect()
    """

    def __init__(self, callback: MutationCallback) -> None:
        self._callback = callback
        self._records: list[MutationRecord] = []
        self._registrations: list[_Registration] = []
        self._delivery: Optional[asyncio.Handle] = None

    def observe(self, target: Node, options: Optional[ObservationOptions] = None) -> None:
        """target の監視を開始する。同じ target への再登録はオプションを置き換える。"""
        options = options or ObservationOptions()
        for registration in target._registrations:
            if registration.observer is self:
                registration.options = options
                return
        registration = _Registration(observer=self, target=target, options=options)
        target._registrations.append(registration)
        self._registrations.append(registration)

    def disconnect(self) -> None:
        """全ての監視を停止し、未配送のレコードを破棄する。"""
        for registration in self._registrations:
            if registration in registration.target._registrations:
                registration.target._registrations.remove(registration)
        self._registrations.clear()
        self._records.clear()
        if self._delivery is not None:
            self._delivery.cancel()
            self._delivery = None

    def take_records(self) -> list[MutationRecord]:
        """未配送のレコードを取り出す。取り出したレコードは配送されない。"""
        records, self._records = self._records, []
        return records

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _enqueue(self, record: MutationRecord) -> None:
        self._records.append(record)
        if self._delivery is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # イベントループ外での変更はその場で配送する
            self._deliver()
            return
        self._delivery = loop.call_soon(self._deliver)

    def _deliver(self) -> None:
        self._delivery = None
        records = self.take_records()
        if not records:
            return
        logger.debug("MutationObserver: %d 件のレコードを配送します", len(records))
        self._callback(records, self)


def queue_mutation_record(node: Node, record: MutationRecord) -> None:
    """node と祖先に登録されたオブザーバーへ record を 1 回ずつ配る。"""
    notified: set[int] = set()
    current: Optional[Node] = node
    while current is not None:
        for registration in list(current._registrations):
            observer = registration.observer
            if id(observer) in notified:
                continue
            if registration.accepts(node, record):
                notified.add(id(observer))
                observer._enqueue(record)
        current = current.parent
