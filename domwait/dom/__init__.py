# インメモリ DOM モジュール
# ノードツリー、MutationObserver、診断用シリアライザを提供

from .nodes import TEST_ID_ATTRIBUTE, Document, Element, Node, Text  # noqa: F401
from .observer import MutationObserver, MutationRecord  # noqa: F401
from .serialize import pretty_dom  # noqa: F401
