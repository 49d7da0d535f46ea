"""
DOM シリアライズ — タイムアウト診断用のマークアップ出力

ノードツリーをインデント付きの HTML 風テキストに整形する。
出力が長すぎる場合は max_length で切り詰め、末尾に "..." を付与する。
"""

from __future__ import annotations

import html
from typing import Optional

from .nodes import Document, Element, Node, Text

_INDENT = "  "


def _format_attributes(element: Element) -> str:
    # 属性名順に並べて出力を安定させる
    return "".join(
        f' {name}="{html.escape(value, quote=True)}"'
        for name, value in sorted(element.attributes.items())
    )


def _render(node: Node, depth: int, lines: list[str]) -> None:
    pad = _INDENT * depth
    if isinstance(node, Text):
        text = node.data.strip()
        if text:
            lines.append(f"{pad}{html.escape(text, quote=False)}")
        return
    if isinstance(node, Document):
        for child in node.children:
            _render(child, depth, lines)
        return
    if isinstance(node, Element):
        attrs = _format_attributes(node)
        if not node.children:
            lines.append(f"{pad}<{node.tag}{attrs} />")
            return
        lines.append(f"{pad}<{node.tag}{attrs}>")
        for child in node.children:
            _render(child, depth + 1, lines)
        lines.append(f"{pad}</{node.tag}>")
        return
    lines.append(f"{pad}{node!r}")


def pretty_dom(node: Node, max_length: Optional[int] = None) -> str:
    """node 以下をインデント付きマークアップとして返す。

    Args:
        node: 出力対象のノード（Document の場合は html 要素から出力）
        max_length: 最大文字数。超過分は切り詰めて "..." を付ける。None は無制限

    Returns:
        整形済みマークアップ文字列
    """
    lines: list[str] = []
    _render(node, 0, lines)
    markup = "\n".join(lines)
    if max_length is not None and len(markup) > max_length:
        return markup[:max(max_length, 0)] + "..."
    return markup
