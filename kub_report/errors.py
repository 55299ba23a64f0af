class ReportError(Exception):
    """Base class for everything the locator and reporter raise."""


class ConfigError(ReportError):
    pass


class BoundaryUnavailable(ReportError):
    """The head block or block #1 could not be fetched."""


class FetchFailed(ReportError):
    """A single block or balance fetch failed."""

    def __init__(self, what: str):
        super().__init__(f"fetch failed: {what}")
        self.what = what


class InvalidRange(ReportError):
    pass


class LocatorExhausted(ReportError):
    """
    The probe budget ran out before the search converged.
    Usually means the timestamps are not monotonic.
    """

    def __init__(self, target: int, probes: int):
        super().__init__(
            f"no block resolved for timestamp {target} after {probes} probes"
        )
        self.target = target
        self.probes = probes
