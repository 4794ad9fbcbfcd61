"""
Ordered fallback, retry and polling helpers

Used wherever a result can come from several sources of decreasing
fidelity (local composite, server composite, placeholder; primary image
provider, placeholder image) or from a job that has to be polled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Strategy(Generic[T]):
    name: str
    run: Callable[[], Awaitable[T]]


@dataclass
class ChainResult(Generic[T]):
    value: T
    strategy: str
    errors: List[Tuple[str, str]] = field(default_factory=list)


class ChainExhausted(Exception):
    def __init__(self, errors: List[Tuple[str, str]]):
        self.errors = errors
        detail = "; ".join(f"{name}: {err}" for name, err in errors) or "no strategies"
        super().__init__(f"All fallbacks failed ({detail})")


async def run_chain(strategies: Sequence[Strategy[T]],
                    retry_on: Tuple[type, ...] = (Exception,)) -> ChainResult[T]:
    """Try each strategy in order and return the first success."""
    errors: List[Tuple[str, str]] = []
    for strategy in strategies:
        try:
            value = await strategy.run()
        except retry_on as e:
            logger.warning("Strategy %s failed: %s", strategy.name, e)
            errors.append((strategy.name, str(e)))
            continue
        if errors:
            logger.info("Strategy %s succeeded after %d failure(s)", strategy.name, len(errors))
        return ChainResult(value=value, strategy=strategy.name, errors=errors)
    raise ChainExhausted(errors)


async def retry_async(fn: Callable[[], Awaitable[T]], attempts: int,
                      retry_on: Tuple[type, ...] = (Exception,),
                      delay: float = 0.0, label: str = "operation") -> T:
    """Call `fn` up to `attempts` times, re-raising the last error."""
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            if attempt == attempts:
                raise
            logger.info("%s attempt %d/%d failed: %s", label, attempt, attempts, e)
            if delay:
                await asyncio.sleep(delay)
    raise AssertionError("unreachable")


class JobStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class JobState:
    status: JobStatus
    result: Optional[Any] = None
    reason: str = ""
    attempts: int = 0


# A poll check returns None while the job is still running, else a terminal JobState
PollCheck = Callable[[], Awaitable[Optional[JobState]]]


async def poll_job(check: PollCheck, max_attempts: int = 60, base_delay: float = 1.0,
                   max_delay: float = 10.0, factor: float = 2.0) -> JobState:
    """Poll until the job reaches a terminal state or attempts run out."""
    delay = base_delay
    for attempt in range(1, max_attempts + 1):
        state = await check()
        if state is not None:
            state.attempts = attempt
            return state
        logger.debug("Job still running (attempt %d/%d), next check in %.2fs", attempt, max_attempts, delay)
        if attempt < max_attempts:
            await asyncio.sleep(delay)
            delay = min(max_delay, delay * factor)
    return JobState(JobStatus.TIMED_OUT, reason=f"no result after {max_attempts} checks", attempts=max_attempts)
