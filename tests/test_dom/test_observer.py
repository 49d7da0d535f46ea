"""
MutationObserver のユニットテスト

テスト対象:
  - 変更種別ごとのレコード生成
  - subtree / attribute_filter オプション
  - バッチ配送と take_records / disconnect
"""

from __future__ import annotations

import asyncio

from domwait.config import ObservationOptions
from domwait.dom import Document, Element, MutationObserver, MutationRecord, Text


def _collect():
    batches: list[list[MutationRecord]] = []
    return batches, (lambda records, observer: batches.append(records))


class TestMutationRecords:
    """レコード内容のテスト。"""

    async def test_child_list_record(self, document: Document) -> None:
        """子要素の追加・削除が childList として記録されること。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document.body)
        item = Element("li")

        document.body.append_child(item)
        item.remove()
        await asyncio.sleep(0)

        assert len(batches) == 1
        added, removed = batches[0]
        assert added.type == "childList" and added.added_nodes == (item,)
        assert removed.removed_nodes == (item,)
        observer.disconnect()

    async def test_attribute_record_old_value(self, document: Document) -> None:
        """属性変更が旧値とともに記録されること。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document.body)

        document.body.set_attribute("class", "a")
        document.body.set_attribute("class", "b")
        await asyncio.sleep(0)

        records = batches[0]
        assert [r.attribute_name for r in records] == ["class", "class"]
        assert [r.old_value for r in records] == [None, "a"]
        observer.disconnect()

    async def test_character_data_record(self, document: Document) -> None:
        """テキスト変更が characterData として記録されること。"""
        text = Text("before")
        document.body.append_child(text)
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document.body)

        text.data = "after"
        await asyncio.sleep(0)

        assert batches[0][0].type == "characterData"
        assert batches[0][0].old_value == "before"
        observer.disconnect()


class TestObservationOptions:
    """監視オプションのテスト。"""

    async def test_without_subtree_ignores_descendants(self, document: Document) -> None:
        """subtree=False では子孫の変更を受け取らないこと。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document, ObservationOptions(subtree=False))

        document.body.append_child(Element("div"))
        await asyncio.sleep(0)

        assert batches == []
        observer.disconnect()

    async def test_attribute_filter(self, document: Document) -> None:
        """attribute_filter に含まれる属性だけを受け取ること。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document, ObservationOptions(attribute_filter=["hidden"]))

        document.body.set_attribute("class", "x")
        document.body.set_attribute("hidden", "")
        await asyncio.sleep(0)

        assert [r.attribute_name for r in batches[0]] == ["hidden"]
        observer.disconnect()

    async def test_reobserve_replaces_options(self, document: Document) -> None:
        """同じ target への再登録でオプションが置き換わること。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document.body)
        observer.observe(document.body, ObservationOptions(attributes=False))

        document.body.set_attribute("class", "x")
        await asyncio.sleep(0)

        assert batches == []
        assert len(document.body._registrations) == 1
        observer.disconnect()


class TestDelivery:
    """配送制御のテスト。"""

    async def test_take_records_prevents_delivery(self, document: Document) -> None:
        """take_records() で取り出したレコードは配送されないこと。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document)

        document.body.append_child(Element("div"))
        taken = observer.take_records()
        await asyncio.sleep(0)

        assert len(taken) == 1
        assert batches == []
        observer.disconnect()

    async def test_disconnect_discards_pending(self, document: Document) -> None:
        """disconnect() で未配送のレコードが破棄されること。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document)

        document.body.append_child(Element("div"))
        observer.disconnect()
        await asyncio.sleep(0.01)

        assert batches == []
        assert document._registrations == []

    def test_delivers_synchronously_without_loop(self) -> None:
        """イベントループ外の変更はその場で配送されること。"""
        document = Document()
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document)

        document.body.append_child(Element("div"))

        assert len(batches) == 1
        observer.disconnect()

    async def test_one_record_per_observer(self, document: Document) -> None:
        """祖先に複数登録があっても 1 つのオブザーバーには 1 回だけ届くこと。"""
        batches, callback = _collect()
        observer = MutationObserver(callback)
        observer.observe(document)
        observer.observe(document.body)

        document.body.append_child(Element("div"))
        await asyncio.sleep(0)

        assert len(batches[0]) == 1
        observer.disconnect()
