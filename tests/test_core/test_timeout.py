"""
タイムアウト制御のユニットテスト

テスト対象:
  - TimeoutController: 単発発火と cancel による抑止
  - build_timeout_error: 最後の失敗の引き継ぎと on_timeout の適用
  - default_on_timeout: scope のマークアップ付与と切り詰め
  - wait_for 経由の on_timeout
"""

from __future__ import annotations

import asyncio

import pytest

from domwait import ConditionFailure, WaitTimeoutError, configure, wait_for
from domwait.config import resolve_config
from domwait.core.timeout import (
    TimeoutController,
    build_timeout_error,
    default_on_timeout,
)
from domwait.dom import Document, Element


# ===========================================================================
# テスト: TimeoutController
# ===========================================================================

class TestTimeoutController:
    """TimeoutController の発火制御テスト。"""

    async def test_fires_once_after_timeout(self) -> None:
        """期限経過後に 1 回だけ発火すること。"""
        fired = []
        controller = TimeoutController(20, lambda: fired.append(True))
        controller.start()

        await asyncio.sleep(0.08)

        assert fired == [True]
        assert controller.fired

    async def test_cancel_suppresses_fire(self) -> None:
        """cancel() 後は発火しないこと。"""
        fired = []
        controller = TimeoutController(20, lambda: fired.append(True))
        controller.start()
        controller.cancel()
        controller.cancel()

        await asyncio.sleep(0.05)

        assert fired == []
        assert not controller.fired

    async def test_cannot_start_twice(self) -> None:
        """2 回目の start() は RuntimeError となること。"""
        controller = TimeoutController(1000, lambda: None)
        controller.start()

        with pytest.raises(RuntimeError):
            controller.start()
        controller.cancel()

    async def test_remaining(self) -> None:
        """残り時間が timeout 以下の非負値であること。"""
        controller = TimeoutController(500, lambda: None)
        assert controller.remaining() == pytest.approx(0.5)

        controller.start()
        remaining = controller.remaining()
        controller.cancel()

        assert 0.0 <= remaining <= 0.5


# ===========================================================================
# テスト: build_timeout_error
# ===========================================================================

class TestBuildTimeoutError:
    """タイムアウト例外の組み立てテスト。"""

    def test_wraps_last_error(self) -> None:
        """最後の失敗のメッセージと参照を引き継ぐこと。"""
        last = ConditionFailure("ボタンが見つかりません")
        config = resolve_config(timeout_ms=300)

        error = build_timeout_error(last, config)

        assert isinstance(error, WaitTimeoutError)
        assert str(error) == "ボタンが見つかりません"
        assert error.last_error is last
        assert error.__cause__ is last
        assert error.timeout_ms == 300

    def test_generic_message_without_failure(self) -> None:
        """失敗がなければ汎用メッセージになること。"""
        error = build_timeout_error(None, resolve_config(timeout_ms=250))

        assert "250ms 以内に満たされませんでした" in str(error)

    def test_empty_message_uses_type_name(self) -> None:
        """メッセージのない例外は型名で表すこと。"""
        error = build_timeout_error(KeyError(), resolve_config(timeout_ms=100))

        assert "KeyError" in str(error)

    def test_on_timeout_result_is_returned(self) -> None:
        """on_timeout の戻り値が最終的な例外になること。"""
        replacement = RuntimeError("差し替え")
        config = resolve_config(on_timeout=lambda error: replacement)

        assert build_timeout_error(None, config) is replacement

    def test_on_timeout_must_return_exception(self) -> None:
        """on_timeout が例外以外を返すと TypeError となること。"""
        config = resolve_config(on_timeout=lambda error: "not an error")  # type: ignore[arg-type,return-value]

        with pytest.raises(TypeError, match="on_timeout"):
            build_timeout_error(None, config)


# ===========================================================================
# テスト: default_on_timeout
# ===========================================================================

class TestDefaultOnTimeout:
    """既定の診断情報付与のテスト。"""

    def test_appends_scope_markup(self, document: Document) -> None:
        """scope のマークアップがメッセージ末尾に付与されること。"""
        document.body.append_child(Element("button", {"data-testid": "submit"}))
        last = ConditionFailure("まだです")
        error = WaitTimeoutError("まだです", last_error=last, timeout_ms=100)

        enriched = default_on_timeout(error, scope=document)

        message = str(enriched)
        assert message.startswith("まだです\n\n<html>")
        assert '<button data-testid="submit" />' in message
        assert enriched.last_error is last
        assert enriched.timeout_ms == 100

    def test_truncates_long_markup(self, document: Document) -> None:
        """max_length を超えるマークアップは切り詰められること。"""
        for i in range(50):
            document.body.append_child(Element("div", {"data-index": str(i)}))
        error = WaitTimeoutError("timeout")

        enriched = default_on_timeout(error, scope=document, max_length=40)

        assert str(enriched).endswith("...")
        assert len(str(enriched)) < 100

    def test_without_scope_returns_same_error(self) -> None:
        """scope がなければ例外をそのまま返すこと。"""
        error = WaitTimeoutError("timeout")

        assert default_on_timeout(error, scope=None) is error

    def test_non_node_scope_uses_repr(self) -> None:
        """ノード以外の scope は repr を付与すること。"""
        enriched = default_on_timeout(WaitTimeoutError("timeout"), scope="page-root")

        assert "'page-root'" in str(enriched)


# ===========================================================================
# テスト: wait_for 経由の on_timeout
# ===========================================================================

class TestWaitForTimeout:
    """wait_for のタイムアウト経路のテスト。"""

    async def test_last_failure_transformed_by_on_timeout(self) -> None:
        """最後の試行失敗が on_timeout に渡されること。"""
        calls = 0
        seen = []

        def condition():
            nonlocal calls
            calls += 1
            raise ConditionFailure(f"失敗 {calls}")

        def on_timeout(error):
            seen.append(error)
            return AssertionError(f"enriched: {error}")

        with pytest.raises(AssertionError, match="^enriched: 失敗") as exc_info:
            await wait_for(condition, interval_ms=10, timeout_ms=60, on_timeout=on_timeout)

        assert len(seen) == 1
        assert str(seen[0].last_error) == f"失敗 {calls}"
        assert str(exc_info.value) == f"enriched: 失敗 {calls}"

    async def test_debug_print_limit_from_defaults(self, document: Document) -> None:
        """configure した debug_print_limit でマークアップが切り詰められること。"""
        for i in range(30):
            document.body.append_child(Element("div", {"data-index": str(i)}))
        configure(debug_print_limit=30)

        with pytest.raises(WaitTimeoutError) as exc_info:
            await wait_for(lambda: False, scope=document, interval_ms=10, timeout_ms=50)

        assert str(exc_info.value).endswith("...")
