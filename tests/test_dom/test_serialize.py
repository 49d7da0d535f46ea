"""
pretty_dom のユニットテスト
"""

from __future__ import annotations

from domwait.dom import Document, Element, Text, pretty_dom


class TestPrettyDom:
    """マークアップ整形のテスト。"""

    def test_nested_markup(self, document: Document) -> None:
        """入れ子がインデントされ、属性は名前順に並ぶこと。"""
        form = Element("form", {"id": "login", "class": "card"})
        button = Element("button", {"type": "submit"})
        button.append_child(Text("ログイン"))
        form.append_child(button)
        document.body.append_child(form)

        assert pretty_dom(document.body) == (
            "<body>\n"
            '  <form class="card" id="login">\n'
            '    <button type="submit">\n'
            "      ログイン\n"
            "    </button>\n"
            "  </form>\n"
            "</body>"
        )

    def test_escapes_text_and_attributes(self) -> None:
        """テキストと属性値がエスケープされること。"""
        element = Element("p", {"title": 'say "hi"'})
        element.append_child(Text("a < b"))

        markup = pretty_dom(element)

        assert 'title="say &quot;hi&quot;"' in markup
        assert "a &lt; b" in markup

    def test_whitespace_only_text_skipped(self) -> None:
        """空白だけのテキストは出力しないこと。"""
        element = Element("div")
        element.append_child(Text("   "))

        assert pretty_dom(element) == "<div>\n</div>"

    def test_truncation(self, document: Document) -> None:
        """max_length を超えると切り詰められること。"""
        markup = pretty_dom(document, max_length=10)

        assert markup == "<html>\n  <" + "..."
