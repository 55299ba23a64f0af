import math
import threading
from datetime import timezone, tzinfo
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from kub_report.errors import BoundaryUnavailable, FetchFailed, LocatorExhausted
from kub_report.logging import log
from kub_report.metrics import (
    BLOCK_CACHE_HITS,
    BLOCK_FETCHES,
    LOCATOR_EXHAUSTED,
    LOCATOR_PROBES,
)
from kub_report.schedule import build_schedule
from kub_report.time_utils import DAY_SECONDS, parse_rfc3339, to_rfc3339
from .block import Block

DEFAULT_MAX_PROBES = 64


class TieBreak(str, Enum):
    AFTER = "after"      # first block with timestamp >= target
    BEFORE = "before"    # last block with timestamp < target
    NEAREST = "nearest"  # closest of the two, earlier block wins a tie


# -------------------------
# Boundaries + memoized blocks
# Lives as long as its locator
# -------------------------
class LocatorState:
    def __init__(self):
        self.boundary_first: Optional[Block] = None
        self.boundary_last: Optional[Block] = None
        self.average_interval: Optional[float] = None
        self.record_cache: Dict[int, Block] = {}
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self.boundary_first is not None and self.boundary_last is not None

    def set_boundaries(self, first: Block, last: Block):
        if last.number > 1:
            average = (last.timestamp - first.timestamp) / (last.number - 1)
        else:
            average = None

        with self._lock:
            self.boundary_first = first
            self.boundary_last = last
            self.average_interval = average

    def boundaries(self) -> Tuple[Block, Block, Optional[float]]:
        """First block, head and average interval from the same refresh."""
        with self._lock:
            return self.boundary_first, self.boundary_last, self.average_interval

    def remember(self, block: Block):
        with self._lock:
            self.record_cache.setdefault(block.number, block)

    def get_or_fetch(self, number: int, fetch: Callable[[int], Block]) -> Block:
        # held across the fetch: two callers never fetch the same number
        with self._lock:
            block = self.record_cache.get(number)
            if block is not None:
                BLOCK_CACHE_HITS.inc()
                return block

            block = fetch(number)
            BLOCK_FETCHES.inc()
            self.record_cache[number] = block
            return block


class BlockLocator:
    """
    Resolves unix timestamps to block numbers with as few block fetches as
    possible.

    The search seeds a guess from the chain-wide average block interval,
    then walks secant steps using the slope of the last two probes. Every
    probe also narrows a bracket (lo, hi] known to contain the answer; a
    step that leaves the bracket, or any step once SECANT_PROBES have been
    spent, falls back to bisecting it.
    """

    SECANT_PROBES = 8

    def __init__(
        self,
        source,
        state: Optional[LocatorState] = None,
        *,
        max_probes: int = DEFAULT_MAX_PROBES,
    ):
        self.source = source
        self.state = state if state is not None else LocatorState()
        self.max_probes = max_probes

    # -------------------------------------------------
    # Boundaries
    # -------------------------------------------------
    def ensure_boundaries(self, refresh: bool = False) -> LocatorState:
        state = self.state
        if state.loaded and not refresh:
            return state

        try:
            last = self.source.fetch_head()
            first = state.get_or_fetch(1, self.source.fetch_by_number)
        except Exception as e:
            raise BoundaryUnavailable(f"could not load chain boundaries: {e}") from e

        state.remember(last)
        state.set_boundaries(first, last)

        log.info(
            "boundaries_loaded",
            extra={
                "first_block": first.number,
                "first_ts": first.timestamp,
                "last_block": last.number,
                "last_ts": last.timestamp,
                "average_interval": state.average_interval,
                "refresh": refresh,
            },
        )
        return state

    def block(self, number: int) -> Block:
        try:
            return self.state.get_or_fetch(number, self.source.fetch_by_number)
        except Exception as e:
            raise FetchFailed(f"block {number}") from e

    # -------------------------------------------------
    # Resolution
    # -------------------------------------------------
    def resolve(
        self,
        target: int,
        tie_break: TieBreak = TieBreak.AFTER,
        refresh: bool = False,
    ) -> int:
        state = self.ensure_boundaries(refresh=refresh)
        first, last, average_interval = state.boundaries()

        if target < first.timestamp:
            return 1
        if target >= last.timestamp:
            return last.number

        ceiling, probes = self._find_ceiling(target, first, last, average_interval)
        LOCATOR_PROBES.labels(tie_break=tie_break.value).observe(probes)

        number = self._apply_tie_break(target, ceiling, tie_break)
        log.info(
            "block_resolved",
            extra={
                "target_ts": target,
                "tie_break": tie_break.value,
                "block": number,
                "probes": probes,
            },
        )
        return number

    def _find_ceiling(
        self,
        target: int,
        first: Block,
        last: Block,
        average_interval: float,
    ) -> Tuple[int, int]:
        """
        First block with timestamp >= target, plus the number of probes spent.
        Requires first.timestamp <= target < last.timestamp.
        """
        visited: Set[int] = set()

        # answer is in (lo, hi]; lo == 0 stands for "before block 1"
        lo, hi = 0, last.number

        estimate = round((target - first.timestamp) / average_interval)
        candidate = self.block(_clamp(estimate, 1, last.number))
        previous: Optional[Block] = None
        interval = average_interval

        while True:
            if len(visited) >= self.max_probes:
                LOCATOR_EXHAUSTED.inc()
                raise LocatorExhausted(target, len(visited))
            visited.add(candidate.number)

            if candidate.timestamp >= target:
                if candidate.number == 1:
                    return 1, len(visited)
                predecessor = self.block(candidate.number - 1)
                if predecessor.timestamp < target:
                    return candidate.number, len(visited)
                hi = min(hi, predecessor.number)
                direction = -1
            else:
                lo = max(lo, candidate.number)
                direction = 1

            if hi - lo == 1:
                return hi, len(visited)

            if previous is not None and previous.number != candidate.number:
                interval = abs(
                    (candidate.timestamp - previous.timestamp)
                    / (candidate.number - previous.number)
                )
            if not interval:
                interval = 1.0

            if len(visited) >= self.SECANT_PROBES:
                number = (lo + hi + 1) // 2
            else:
                step = math.ceil((target - candidate.timestamp) / interval)
                if step == 0:
                    step = direction
                number = self._next_number(candidate.number, step, lo, hi, last.number, visited)

            previous = candidate
            candidate = self.block(number)

    @staticmethod
    def _next_number(
        current: int,
        step: int,
        lo: int,
        hi: int,
        last_number: int,
        visited: Set[int],
    ) -> int:
        number = current + step
        # never re-derive a probed candidate: widen the step instead
        while 1 <= number <= last_number and number in visited:
            step += 1 if step > 0 else -1
            number = current + step
        number = _clamp(number, 1, last_number)

        if not lo < number <= hi:
            number = (lo + hi + 1) // 2
        return number

    def _apply_tie_break(self, target: int, ceiling: int, tie_break: TieBreak) -> int:
        if tie_break is TieBreak.AFTER or ceiling == 1:
            return ceiling
        if tie_break is TieBreak.BEFORE:
            return ceiling - 1

        before = self.block(ceiling - 1)
        after = self.block(ceiling)
        if target - before.timestamp <= after.timestamp - target:
            return before.number
        return after.number

    # -------------------------------------------------
    # Convenience
    # -------------------------------------------------
    def resolve_every(
        self,
        start: int,
        end: int,
        step: int = DAY_SECONDS,
        tie_break: TieBreak = TieBreak.AFTER,
    ) -> List[int]:
        return [self.resolve(ts, tie_break) for ts in build_schedule(start, end, step)]

    def date_to_block(self, date: str, tie_break: TieBreak = TieBreak.AFTER) -> int:
        """ex: date -> 'YYYY-MM-DDThh:mm:ss+hh:mm'"""
        return self.resolve(parse_rfc3339(date), tie_break)

    def block_to_date(self, number: int, tz: tzinfo = timezone.utc) -> str:
        return to_rfc3339(self.block(number).timestamp, tz)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
