from datetime import timezone, tzinfo
from typing import Dict, Iterable, List, Sequence, Tuple

from kub_report.errors import FetchFailed
from kub_report.locating import BlockLocator, TieBreak
from kub_report.logging import log
from kub_report.metrics import BALANCE_FETCHES, REPORT_ROWS
from kub_report.schedule import build_schedule
from kub_report.time_utils import DAY_SECONDS, to_date
from .row import ReportRow


class TimelineReporter:
    """
    Daily balance changes for a fixed set of addresses.

    Every schedule timestamp resolves to the first block at or after it.
    The first resolved block only seeds each address's previous balance;
    each later block emits one row per address. Rows are dated from the
    block's own timestamp, not the schedule's.
    """

    def __init__(self, locator: BlockLocator, balances, *, tz: tzinfo = timezone.utc):
        self.locator = locator
        self.balances = balances
        self.tz = tz
        self._saved_balance: Dict[Tuple[str, int], int] = {}

    def build_schedule(self, start: int, end: int, step: int = DAY_SECONDS) -> List[int]:
        return build_schedule(start, end, step)

    def resolve_blocks(self, schedule: Sequence[int]) -> List[int]:
        return [self.locator.resolve(ts, TieBreak.AFTER) for ts in schedule]

    def get_balance(self, address: str, block: int) -> int:
        key = (address.lower(), block)
        if key in self._saved_balance:
            return self._saved_balance[key]

        try:
            balance = self.balances.balance_at(address, block)
        except Exception as e:
            raise FetchFailed(f"balance of {address} at block {block}") from e

        BALANCE_FETCHES.inc()
        self._saved_balance[key] = balance
        return balance

    def generate_report(
        self,
        start: int,
        end: int,
        addresses: Iterable[str],
        step: int = DAY_SECONDS,
    ) -> List[ReportRow]:
        schedule = self.build_schedule(start, end, step)
        return self.report_schedule(schedule, addresses)

    def report_schedule(self, schedule: Sequence[int], addresses: Iterable[str]) -> List[ReportRow]:
        addresses = list(addresses)
        if not schedule or not addresses:
            return []

        blocks = self.resolve_blocks(schedule)

        previous = {a: self.get_balance(a, blocks[0]) for a in addresses}
        rows: List[ReportRow] = []

        for block in blocks[1:]:
            timestamp = self.locator.block(block).timestamp
            date = to_date(timestamp, self.tz)

            for address in addresses:
                balance = self.get_balance(address, block)
                rows.append(
                    ReportRow(
                        date=date,
                        timestamp=timestamp,
                        block=block,
                        address=address,
                        daily_change=balance - previous[address],
                        ending_balance=balance,
                    )
                )
                previous[address] = balance

        REPORT_ROWS.inc(len(rows))
        log.info(
            "report_generated",
            extra={
                "schedule_start": schedule[0],
                "schedule_end": schedule[-1],
                "first_block": blocks[0],
                "last_block": blocks[-1],
                "addresses": len(addresses),
                "rows": len(rows),
            },
        )
        return rows
