import bisect
from collections import Counter

import pytest

from kub_report.locating import Block, BlockLocator


class FakeChain:
    """In-memory record source. timestamps[0] belongs to block 1."""

    def __init__(self, timestamps, fail_on=()):
        self.timestamps = list(timestamps)
        self.fail_on = set(fail_on)
        self.fail_head = False
        self.fetches = Counter()
        self.head_fetches = 0

    @classmethod
    def from_fn(cls, fn, head):
        return cls([fn(n) for n in range(1, head + 1)])

    @property
    def head(self):
        return len(self.timestamps)

    def fetch_by_number(self, number):
        if number in self.fail_on:
            raise ConnectionError(f"rpc down for block {number}")
        if not 1 <= number <= self.head:
            raise ValueError(f"block {number} out of range")
        self.fetches[number] += 1
        return Block(number, self.timestamps[number - 1])

    def fetch_head(self):
        if self.fail_head:
            raise ConnectionError("rpc down for head")
        self.head_fetches += 1
        return Block(self.head, self.timestamps[-1])

    def ceiling(self, target):
        return bisect.bisect_left(self.timestamps, target) + 1


class FakeBalances:
    def __init__(self, balances, fail_on=()):
        # {address: {block: balance}}
        self.balances = balances
        self.fail_on = set(fail_on)
        self.calls = Counter()

    def balance_at(self, address, block):
        if (address, block) in self.fail_on:
            raise ConnectionError(f"rpc down for {address}@{block}")
        self.calls[(address, block)] += 1
        return self.balances[address][block]


@pytest.fixture
def uniform_chain():
    # record(n).timestamp = 1000*n - 500
    return FakeChain.from_fn(lambda n: 1000 * n - 500, 1000)


@pytest.fixture
def uniform_locator(uniform_chain):
    return BlockLocator(uniform_chain)
