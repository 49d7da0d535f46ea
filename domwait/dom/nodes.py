"""
インメモリ DOM — 待機エンジンのテスト・組み込み用ドキュメントモデル

ブラウザの DOM を最小限に模したノードツリーを提供する。
構造変更・属性変更・テキスト変更は所属ドキュメントの MutationObserver
レジストリへ通知され、監視中のオブザーバーにバッチ配送される。

主な機能:
  - Document / Element / Text ノード
  - append_child / insert_before / remove_child / remove による構造変更
  - set_attribute / remove_attribute による属性変更
  - contains / is_connected による到達性判定
  - find / find_all / get / get_by_test_id による簡易クエリ
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from ..errors import ElementNotFoundError

if TYPE_CHECKING:
    from .observer import MutationRecord, _Registration

logger = logging.getLogger(__name__)

TEST_ID_ATTRIBUTE = "data-testid"


# ---------------------------------------------------------------------------
# Node 基底クラス
# ---------------------------------------------------------------------------

class Node:
    """ツリー内のノード。親子関係とミューテーション通知を管理する。"""

    def __init__(self) -> None:
        self.parent: Optional[Node] = None
        self.children: list[Node] = []
        # このノードを監視対象とするオブザーバー登録
        self._registrations: list[_Registration] = []

    # -------------------------------------------------------------------
    # ツリー参照
    # -------------------------------------------------------------------

    @property
    def root(self) -> Node:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def owner_document(self) -> Optional[Document]:
        """ノードが所属するドキュメント。ツリーから外れている場合は None。"""
        root = self.root
        return root if isinstance(root, Document) else None

    @property
    def is_connected(self) -> bool:
        """ドキュメントのルートから到達可能かどうか。"""
        return isinstance(self.root, Document)

    def contains(self, other: Optional[Node]) -> bool:
        """other が自身または子孫であれば True。"""
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def iter_descendants(self) -> Iterator[Node]:
        """子孫ノードを文書順（深さ優先）で列挙する。"""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    @property
    def text_content(self) -> str:
        return "".join(
            node.data for node in self.iter_descendants() if isinstance(node, Text)
        )

    @text_content.setter
    def text_content(self, value: str) -> None:
        for child in list(self.children):
            self.remove_child(child)
        if value:
            self.append_child(Text(value))

    # -------------------------------------------------------------------
    # 構造変更
    # -------------------------------------------------------------------

    def append_child(self, child: Node) -> Node:
        return self.insert_before(child, None)

    def insert_before(self, child: Node, reference: Optional[Node]) -> Node:
        """reference の直前に child を挿入する。reference が None なら末尾に追加。"""
        if child.contains(self):
            raise ValueError("祖先ノードを子として挿入することはできません")
        if reference is not None and reference.parent is not self:
            raise ValueError("reference はこのノードの子ではありません")
        if child.parent is not None:
            child.parent.remove_child(child)

        previous_sibling: Optional[Node]
        if reference is None:
            previous_sibling = self.children[-1] if self.children else None
            self.children.append(child)
        else:
            index = self.children.index(reference)
            previous_sibling = self.children[index - 1] if index > 0 else None
            self.children.insert(index, child)
        child.parent = self

        self._queue_child_list(
            added=[child], removed=[],
            previous_sibling=previous_sibling, next_sibling=reference,
        )
        return child

    def remove_child(self, child: Node) -> Node:
        if child.parent is not self:
            raise ValueError("指定されたノードはこのノードの子ではありません")
        index = self.children.index(child)
        previous_sibling = self.children[index - 1] if index > 0 else None
        next_sibling = (
            self.children[index + 1] if index + 1 < len(self.children) else None
        )
        del self.children[index]
        child.parent = None

        self._queue_child_list(
            added=[], removed=[child],
            previous_sibling=previous_sibling, next_sibling=next_sibling,
        )
        return child

    def remove(self) -> None:
        """自身を親から取り外す。親がなければ何もしない。"""
        if self.parent is not None:
            self.parent.remove_child(self)

    # -------------------------------------------------------------------
    # クエリ
    # -------------------------------------------------------------------

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [
            node for node in self.iter_descendants()
            if isinstance(node, Element) and predicate(node)
        ]

    def find(self, predicate: Callable[[Element], bool]) -> Optional[Element]:
        for node in self.iter_descendants():
            if isinstance(node, Element) and predicate(node):
                return node
        return None

    def get(
        self, predicate: Callable[[Element], bool], description: str = "条件"
    ) -> Element:
        """predicate に一致する最初の要素を返す。なければ ElementNotFoundError。"""
        element = self.find(predicate)
        if element is None:
            raise ElementNotFoundError(f"{description} に一致する要素が見つかりません")
        return element

    def query_by_test_id(self, test_id: str) -> Optional[Element]:
        return self.find(lambda el: el.get_attribute(TEST_ID_ATTRIBUTE) == test_id)

    def get_by_test_id(self, test_id: str) -> Element:
        return self.get(
            lambda el: el.get_attribute(TEST_ID_ATTRIBUTE) == test_id,
            description=f"{TEST_ID_ATTRIBUTE}='{test_id}'",
        )

    # -------------------------------------------------------------------
    # ミューテーション通知
    # -------------------------------------------------------------------

    def _queue_child_list(
        self,
        *,
        added: list[Node],
        removed: list[Node],
        previous_sibling: Optional[Node],
        next_sibling: Optional[Node],
    ) -> None:
        from .observer import MutationRecord

        self._queue_record(MutationRecord(
            type="childList",
            target=self,
            added_nodes=tuple(added),
            removed_nodes=tuple(removed),
            previous_sibling=previous_sibling,
            next_sibling=next_sibling,
        ))

    def _queue_record(self, record: MutationRecord) -> None:
        """自身と祖先に登録されたオブザーバーへレコードを配る。"""
        from .observer import queue_mutation_record

        queue_mutation_record(self, record)


# ---------------------------------------------------------------------------
# 具象ノード
# ---------------------------------------------------------------------------

class Document(Node):
    """ツリーのルート。is_connected の基準となる。"""

    def __init__(self) -> None:
        super().__init__()
        self.document_element = Element("html")
        self.head = Element("head")
        self.body = Element("body")
        self.document_element.append_child(self.head)
        self.document_element.append_child(self.body)
        self.append_child(self.document_element)

    def create_element(self, tag: str, **attributes: str) -> Element:
        return Element(tag, attributes)

    def create_text_node(self, data: str) -> Text:
        return Text(data)

    def __repr__(self) -> str:
        return "<Document>"


class Element(Node):
    """タグ名と属性を持つ要素ノード。"""

    def __init__(self, tag: str, attributes: Optional[dict[str, str]] = None) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.attributes: dict[str, str] = dict(attributes or {})

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        from .observer import MutationRecord

        old_value = self.attributes.get(name)
        self.attributes[name] = str(value)
        self._queue_record(MutationRecord(
            type="attributes", target=self,
            attribute_name=name, old_value=old_value,
        ))

    def remove_attribute(self, name: str) -> None:
        from .observer import MutationRecord

        if name not in self.attributes:
            return
        old_value = self.attributes.pop(name)
        self._queue_record(MutationRecord(
            type="attributes", target=self,
            attribute_name=name, old_value=old_value,
        ))

    def __repr__(self) -> str:
        return f"<Element {self.tag}>"


class Text(Node):
    """テキストノード。data の変更は characterData として通知される。"""

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self._data = data

    @property
    def data(self) -> str:
        return self._data

    @data.setter
    def data(self, value: str) -> None:
        from .observer import MutationRecord

        old_value = self._data
        self._data = value
        self._queue_record(MutationRecord(
            type="characterData", target=self, old_value=old_value,
        ))

    @property
    def text_content(self) -> str:
        return self._data

    @text_content.setter
    def text_content(self, value: str) -> None:
        self.data = value

    def append_child(self, child: Node) -> Node:
        raise ValueError("テキストノードは子を持てません")

    def insert_before(self, child: Node, reference: Optional[Node]) -> Node:
        raise ValueError("テキストノードは子を持てません")

    def __repr__(self) -> str:
        return f"<Text {self._data!r}>"
