from dataclasses import dataclass

COLUMNS = ("date", "timestamp", "block", "address", "daily_change", "ending_balance")


# one address on one resolved block
@dataclass(frozen=True)
class ReportRow:
    date: str
    timestamp: int
    block: int
    address: str
    daily_change: int
    ending_balance: int

    def as_list(self):
        return [
            self.date,
            str(self.timestamp),
            str(self.block),
            self.address,
            str(self.daily_change),
            str(self.ending_balance),
        ]
