from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    value: Optional[T]
    ok: bool
    attempts: int


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    *,
    predicate: Callable[[T], Any] = bool,
    max_attempts: int = 3,
    delay: float = 2.0,
    timeout: Optional[float] = None,
    label: str = "poll",
) -> PollResult[T]:
    """
    fetch() を predicate が真になるまで最大 max_attempts 回呼ぶ。

    - 試行の間に delay 秒待つ（最後の試行の後は待たない）
    - timeout（秒）を超えたら残りの試行を打ち切る
    - fetch の例外はそのまま呼び出し側へ伝播する
    最後に得た値を ok=False で返すので、呼び出し側は失敗時の値も参照できる。
    """
    deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
    attempts = max(1, int(max_attempts))
    value: Optional[T] = None
    for attempt in range(1, attempts + 1):
        value = await fetch()
        if predicate(value):
            return PollResult(value=value, ok=True, attempts=attempt)
        if attempt >= attempts:
            break
        if deadline is not None and time.monotonic() + delay > deadline:
            log.debug("[%s] budget exhausted after %s attempt(s)", label, attempt)
            return PollResult(value=value, ok=False, attempts=attempt)
        log.debug("[%s] attempt %s/%s not ready, retry in %.1fs", label, attempt, attempts, delay)
        if delay > 0:
            await asyncio.sleep(delay)
    return PollResult(value=value, ok=False, attempts=attempts)
