"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するインメモリ DOM のフィクスチャと、
待機エンジンのプロパティテスト用のデータ生成器を提供する。
"""

from __future__ import annotations

import pytest
from hypothesis import strategies as st

from domwait.config import reset_defaults
from domwait.dom import Document, Element


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolated_defaults(monkeypatch: pytest.MonkeyPatch):
    """テストごとに待機デフォルト値と環境変数を初期状態へ戻す。"""
    for key in ("DOMWAIT_TIMEOUT_MS", "DOMWAIT_INTERVAL_MS", "DOMWAIT_DEBUG_PRINT_LIMIT"):
        monkeypatch.delenv(key, raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def document() -> Document:
    """空の body を持つドキュメント。"""
    return Document()


@pytest.fixture
def spinner(document: Document) -> Element:
    """body 直下に配置されたローディングスピナー要素。"""
    element = Element("div", {"data-testid": "spinner", "class": "loading"})
    document.body.append_child(element)
    return element


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー（ファクトリ関数）
# ---------------------------------------------------------------------------

def make_failure_count_strategy():
    """成功するまでに失敗する回数を生成する Hypothesis ストラテジー。"""
    return st.integers(min_value=0, max_value=5)


def make_interval_strategy():
    """ポーリング間隔（ミリ秒）を生成する Hypothesis ストラテジー。"""
    return st.integers(min_value=1, max_value=10)


def make_success_value_strategy():
    """truthy な成功値を生成する Hypothesis ストラテジー。"""
    return st.one_of(
        st.integers(min_value=1),
        st.text(min_size=1, max_size=20),
        st.lists(st.integers(), min_size=1, max_size=3),
    )
