from .block import Block
from .locator import BlockLocator, LocatorState, TieBreak, DEFAULT_MAX_PROBES

__all__ = [
    "Block",
    "BlockLocator",
    "LocatorState",
    "TieBreak",
    "DEFAULT_MAX_PROBES",
]
