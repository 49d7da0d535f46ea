# コアモジュール
# 条件待機エンジン、削除待機、変更シグナル、タイムアウト制御、周期タイマーを提供

from .removal import (
    REMOVAL_ALREADY_ABSENT_MESSAGE,
    LookupTarget,
    MultiTarget,
    SingleTarget,
    resolve_target,
    wait_for_removal,
)
from .signal import ChangeSignal, ChangeSource, DomChangeSource, Subscription
from .timeout import TimeoutController, build_timeout_error, default_on_timeout
from .timers import IntervalTimer
from .waiter import ConditionWaiter, wait_for

__all__ = [
    "REMOVAL_ALREADY_ABSENT_MESSAGE",
    "ChangeSignal",
    "ChangeSource",
    "ConditionWaiter",
    "DomChangeSource",
    "IntervalTimer",
    "LookupTarget",
    "MultiTarget",
    "SingleTarget",
    "Subscription",
    "TimeoutController",
    "build_timeout_error",
    "default_on_timeout",
    "resolve_target",
    "wait_for",
    "wait_for_removal",
]
