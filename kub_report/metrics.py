from prometheus_client import Counter, Histogram

# -----------------------------
# Locator
# -----------------------------
BLOCK_FETCHES = Counter(
    "locator_block_fetch_total",
    "Blocks fetched from the record source (cache misses)",
)
BLOCK_CACHE_HITS = Counter(
    "locator_block_cache_hit_total",
    "Block lookups answered from the locator cache",
)
LOCATOR_PROBES = Histogram(
    "locator_probes_per_resolution",
    "Candidates probed before a timestamp resolved",
    ["tie_break"],
    buckets=(1, 2, 3, 5, 8, 13, 21, 34, 55),
)
LOCATOR_EXHAUSTED = Counter(
    "locator_exhausted_total",
    "Resolutions aborted after exceeding the probe budget",
)

# -----------------------------
# Report
# -----------------------------
BALANCE_FETCHES = Counter(
    "report_balance_fetch_total",
    "Balances fetched from the balance source",
)
REPORT_ROWS = Counter(
    "report_rows_total",
    "Rows emitted by the timeline reporter",
)

# -----------------------------
# RPC
# -----------------------------
RPC_REQUESTS = Counter(
    "rpc_requests_total",
    "RPC requests by provider",
    ["chain", "rpc", "key_env"],
)
RPC_ERRORS = Counter(
    "rpc_errors_total",
    "RPC errors by provider",
    ["chain", "rpc", "key_env"],
)
