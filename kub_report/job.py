# -----------------------------
# import deps
# -----------------------------
import os
import json
from datetime import timedelta
from prometheus_client import start_http_server
from kub_report.errors import ConfigError, InvalidRange, ReportError
from kub_report.locating import BlockLocator
from kub_report.logging import log
from kub_report.reporting import TimelineReporter, write_report_csv
from kub_report.rpc_provider import RpcPool, Web3Router
from kub_report.sources import Web3BalanceSource, Web3RecordSource
from kub_report.time_utils import day_starts, load_timezone, parse_date

# -----------------------------
# Environment Variables
# -----------------------------
CHAIN = os.getenv("CHAIN", "eth").lower() # eth, bsc, base ... from rpc_providers.json
RPC_CONFIG_PATH = os.getenv("RPC_CONFIG_PATH", "/etc/ingestion/rpc_providers.json")
RPC_TIMEOUT = int(os.getenv("RPC_TIMEOUT", "10"))
START_DATE = os.getenv("START_DATE") # YYYY-MM-DD, first reported day
END_DATE = os.getenv("END_DATE")     # YYYY-MM-DD, last reported day
REPORT_TZ = os.getenv("REPORT_TZ", "UTC") # day boundaries and row dates
ADDRESSES = os.getenv("ADDRESSES", "") # comma separated
OUTPUT_PATH = os.getenv("OUTPUT_PATH", "balance_report.csv")
MAX_PROBES = int(os.getenv("MAX_PROBES", "64"))
METRICS_PORT = os.getenv("METRICS_PORT") # unset -> no metrics server


def parse_addresses(raw: str) -> list:
    addresses = [a.strip() for a in raw.split(",") if a.strip()]
    if not addresses:
        raise ConfigError("ADDRESSES must list at least one address")
    return addresses


def load_rpc_configs(path: str) -> dict:
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read RPC config {path}: {e}") from e


def build_report_schedule(start_date: str | None, end_date: str | None, tz) -> list:
    """
    Local midnights from the day BEFORE start_date through end_date.
    The extra leading day only seeds balances, so the first row is start_date.
    """
    if not start_date or not end_date:
        raise ConfigError("Must provide START_DATE & END_DATE (YYYY-MM-DD)")

    first_day = parse_date(start_date)
    last_day = parse_date(end_date)
    if first_day > last_day:
        raise InvalidRange(f"START_DATE {start_date} > END_DATE {end_date}")

    return day_starts(first_day - timedelta(days=1), last_day, tz)


def build_reporter(rpc_configs: dict, chain: str, tz) -> TimelineReporter:
    rpc_pool = RpcPool.from_config(rpc_configs, chain)
    web3_router = Web3Router(
        rpc_pool=rpc_pool,
        chain=chain,
        timeout=RPC_TIMEOUT,
        penalize_seconds=15,
    )
    locator = BlockLocator(Web3RecordSource(web3_router), max_probes=MAX_PROBES)
    return TimelineReporter(locator, Web3BalanceSource(web3_router), tz=tz)


def run_balance_report() -> int:
    tz = load_timezone(REPORT_TZ)
    addresses = parse_addresses(ADDRESSES)
    schedule = build_report_schedule(START_DATE, END_DATE, tz)
    reporter = build_reporter(load_rpc_configs(RPC_CONFIG_PATH), CHAIN, tz)

    log.info(
        "job_start",
        extra={
            "chain": CHAIN,
            "start_date": START_DATE,
            "end_date": END_DATE,
            "report_tz": REPORT_TZ,
            "addresses": len(addresses),
            "output_path": OUTPUT_PATH,
        },
    )

    rows = reporter.report_schedule(schedule, addresses)
    written = write_report_csv(rows, OUTPUT_PATH)

    log.info(
        "job_done",
        extra={"rows": written, "output_path": OUTPUT_PATH},
    )
    return written


def main():
    if METRICS_PORT:
        start_http_server(int(METRICS_PORT))

    try:
        run_balance_report()
    except ReportError as e:
        log.error("job_failed", extra={"error": str(e), "error_type": type(e).__name__})
        raise SystemExit(1)


if __name__ == "__main__":
    main()
