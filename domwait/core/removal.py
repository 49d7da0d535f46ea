"""
削除待機 — 要素が document から取り除かれるまで待つ

wait_for() の上に構築されたポリシー。対象は次のいずれかで指定する:
  - SingleTarget: 単一の要素
  - MultiTarget: 要素のシーケンス（list / tuple / set / frozenset）
  - LookupTarget: 上記いずれかを返す引数なしの関数

対象の解決と検証は待機開始前に 1 回だけ同期的に行う。
対象が None または空の場合は「何も無いものの削除待ち」という呼び出し側の誤りとして
InvalidArgumentError を即座に送出し、ポーリングは一切行わない。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from ..config import resolve_config
from ..errors import ConditionFailure, InvalidArgumentError
from .waiter import ConditionWaiter

logger = logging.getLogger(__name__)

REMOVAL_ALREADY_ABSENT_MESSAGE = (
    "The element(s) given to wait_for_removal are already removed. "
    "wait_for_removal requires that the element(s) exist(s) before waiting for removal."
)

IsPresent = Callable[[Any], Union[bool, Awaitable[bool]]]

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


# ---------------------------------------------------------------------------
# 対象指定（タグ付きバリアント）
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SingleTarget:
    element: Any


@dataclass(frozen=True)
class MultiTarget:
    elements: tuple[Any, ...]


@dataclass(frozen=True)
class LookupTarget:
    lookup: Callable[[], Any]


RemovalTarget = Union[SingleTarget, MultiTarget, LookupTarget]


def classify_target(target: Any) -> Optional[RemovalTarget]:
    """生の引数をタグ付きバリアントへ分類する。None はそのまま None を返す。"""
    if target is None:
        return None
    if isinstance(target, (SingleTarget, MultiTarget, LookupTarget)):
        return target
    if isinstance(target, _SEQUENCE_TYPES):
        return MultiTarget(tuple(target))
    if callable(target):
        return LookupTarget(target)
    return SingleTarget(target)


def resolve_target(target: Any) -> tuple[Any, ...]:
    """対象を要素のタプルへ正規化し、空でないことを検証する。

    LookupTarget の関数はここで 1 回だけ呼び出される。

    Raises:
        InvalidArgumentError: 対象が None または空の場合
    """
    variant = classify_target(target)
    if isinstance(variant, LookupTarget):
        resolved = variant.lookup()
        if isinstance(resolved, LookupTarget) or callable(resolved):
            raise InvalidArgumentError(
                "検索関数は要素または要素のシーケンスを返す必要があります"
            )
        variant = classify_target(resolved)

    if variant is None:
        elements: tuple[Any, ...] = ()
    elif isinstance(variant, SingleTarget):
        elements = (variant.element,)
    else:
        elements = tuple(variant.elements)

    if not elements or any(element is None for element in elements):
        raise InvalidArgumentError(REMOVAL_ALREADY_ABSENT_MESSAGE)
    return elements


# ---------------------------------------------------------------------------
# 削除条件
# ---------------------------------------------------------------------------

def _default_is_present(element: Any) -> bool:
    return bool(element.is_connected)


def _raise_if_present(flags: Sequence[bool], total: int) -> bool:
    remaining = sum(1 for flag in flags if flag)
    if remaining:
        raise ConditionFailure(
            f"要素がまだ document に存在します（{remaining}/{total} 件）"
        )
    return True


def build_removal_condition(
    elements: tuple[Any, ...], is_present: Optional[IsPresent] = None
) -> Callable[[], Union[bool, Awaitable[bool]]]:
    """全要素が document から到達不能になったら True を返す条件関数を作る。"""
    check = is_present or _default_is_present

    async def _gather(results: list[Any]) -> bool:
        awaited = iter(await asyncio.gather(
            *(r for r in results if inspect.isawaitable(r))
        ))
        flags = [next(awaited) if inspect.isawaitable(r) else r for r in results]
        return _raise_if_present(flags, len(elements))

    def condition() -> Union[bool, Awaitable[bool]]:
        results: list[Any] = []
        try:
            for element in elements:
                results.append(check(element))
        except BaseException:
            # 途中で失敗した場合、作成済みのコルーチンを閉じてから再送出する
            for result in results:
                if inspect.iscoroutine(result):
                    result.close()
            raise
        if any(inspect.isawaitable(r) for r in results):
            return _gather(results)
        return _raise_if_present(results, len(elements))

    return condition


# ---------------------------------------------------------------------------
# 関数 API
# ---------------------------------------------------------------------------

def wait_for_removal(
    target: Any,
    *,
    scope: Any = None,
    timeout_ms: Optional[int] = None,
    interval_ms: Optional[int] = None,
    on_timeout: Optional[Callable[[BaseException], BaseException]] = None,
    observation: Any = None,
    change_source: Any = None,
    is_present: Optional[IsPresent] = None,
) -> Awaitable[None]:
    """要素が document から取り除かれるまで待機する awaitable を返す。

    対象の解決と検証はこの関数の呼び出し時点で同期的に行われる。

    使用例::

        await wait_for_removal(lambda: doc.query_by_test_id("spinner"))

    Args:
        target: 要素・要素のシーケンス・それらを返す検索関数
        scope: 監視対象（省略時は要素の owner_document、なければデフォルト）
        is_present: 要素の存在判定（省略時は element.is_connected）
        その他: wait_for() と同じ

    Returns:
        削除完了時に None で完了する awaitable

    Raises:
        InvalidArgumentError: 対象が None または空の場合（即座に送出）
    """
    elements = resolve_target(target)
    if scope is None:
        scope = next(
            (doc for doc in (getattr(el, "owner_document", None) for el in elements)
             if doc is not None),
            None,
        )

    config = resolve_config(
        scope=scope,
        timeout_ms=timeout_ms,
        interval_ms=interval_ms,
        on_timeout=on_timeout,
        observation=observation,
        change_source=change_source,
    )
    waiter = ConditionWaiter(build_removal_condition(elements, is_present), config)
    logger.debug("%d 件の要素の削除待機を開始します", len(elements))
    return _await_removal(waiter)


async def _await_removal(waiter: ConditionWaiter) -> None:
    await waiter.wait()
    return None
