from typing import Protocol
from web3 import Web3
from kub_report.locating.block import Block


class RecordSource(Protocol):
    def fetch_by_number(self, number: int) -> Block: ...

    def fetch_head(self) -> Block: ...


class BalanceSource(Protocol):
    def balance_at(self, address: str, block: int) -> int: ...


# -----------------------------
# web3 backed sources
# -----------------------------
class Web3RecordSource:
    def __init__(self, web3_router):
        self.web3_router = web3_router

    def fetch_by_number(self, number: int) -> Block:
        return self._fetch(number)

    def fetch_head(self) -> Block:
        return self._fetch("latest")

    def _fetch(self, identifier) -> Block:
        b = self.web3_router.call(
            lambda w3: w3.eth.get_block(identifier)
        )
        return Block(number=int(b["number"]), timestamp=int(b["timestamp"]))


class Web3BalanceSource:
    def __init__(self, web3_router):
        self.web3_router = web3_router

    def balance_at(self, address: str, block: int) -> int:
        account = Web3.to_checksum_address(address)
        return int(
            self.web3_router.call(
                lambda w3: w3.eth.get_balance(account, block_identifier=block)
            )
        )
