import json
from collections import defaultdict
from pathlib import Path

import pytest

from conftest import FakeBalances, FakeChain
from kub_report import job
from kub_report.errors import ConfigError, InvalidRange
from kub_report.locating import BlockLocator
from kub_report.reporting import COLUMNS, TimelineReporter
from kub_report.rpc_provider import RpcPool
from kub_report.time_utils import date_to_timestamp, to_date

NOV_1 = 1667260800
DAY = 86400
EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "rpc_providers.example.json"


def test_parse_addresses():
    assert job.parse_addresses(" 0xa, 0xb ,,0xc ") == ["0xa", "0xb", "0xc"]
    with pytest.raises(ConfigError):
        job.parse_addresses(" , ")


def test_report_schedule_starts_one_day_early():
    schedule = job.build_report_schedule("2022-11-01", "2022-11-30", job.load_timezone("UTC"))

    assert schedule[0] == NOV_1 - DAY
    assert schedule[-1] == NOV_1 + 29 * DAY
    assert len(schedule) == 31


def test_report_schedule_requires_both_dates():
    with pytest.raises(ConfigError):
        job.build_report_schedule("2022-11-01", None, job.load_timezone("UTC"))


def test_report_schedule_rejects_start_after_end():
    with pytest.raises(InvalidRange):
        job.build_report_schedule("2022-11-02", "2022-11-01", job.load_timezone("UTC"))


def test_report_schedule_follows_local_midnights_across_dst():
    new_york = job.load_timezone("America/New_York")
    schedule = job.build_report_schedule("2023-11-01", "2023-11-08", new_york)

    assert [to_date(ts, new_york) for ts in schedule] == [
        f"2023-{day}" for day in ["10-31", "11-01", "11-02", "11-03", "11-04", "11-05", "11-06", "11-07", "11-08"]
    ]
    # 2023-11-05 is 25 hours long in New York
    assert schedule[6] - schedule[5] == DAY + 3600


def test_load_rpc_configs(tmp_path):
    configs = job.load_rpc_configs(str(EXAMPLE_CONFIG))
    assert [p.name for p in RpcPool.from_config(configs, "eth").providers] == [
        "infura",
        "alchemy",
        "publicnode",
    ]

    broken = tmp_path / "rpc.json"
    broken.write_text("{not json")
    with pytest.raises(ConfigError):
        job.load_rpc_configs(str(broken))
    with pytest.raises(ConfigError):
        job.load_rpc_configs(str(tmp_path / "missing.json"))


def test_run_balance_report_writes_csv(monkeypatch, tmp_path):
    address = "0xddbd2b932c763ba5b1b7ae3b362eac3e8d40121a"
    # one block per hour starting 2022-10-31 00:00 UTC
    chain = FakeChain.from_fn(lambda n: NOV_1 - DAY + 3600 * (n - 1), 24 * 5)
    balances = FakeBalances({address: {1: 10, 25: 15, 49: 12}})
    output = tmp_path / "balance_report.csv"

    monkeypatch.setattr(job, "START_DATE", "2022-11-01")
    monkeypatch.setattr(job, "END_DATE", "2022-11-02")
    monkeypatch.setattr(job, "ADDRESSES", address)
    monkeypatch.setattr(job, "OUTPUT_PATH", str(output))
    monkeypatch.setattr(job, "load_rpc_configs", lambda path: {})
    monkeypatch.setattr(
        job,
        "build_reporter",
        lambda configs, chain_name, tz: TimelineReporter(BlockLocator(chain), balances, tz=tz),
    )

    assert job.run_balance_report() == 2
    assert output.read_text().splitlines() == [
        ",".join(COLUMNS),
        f"2022-11-01,{NOV_1},25,{address},5,15",
        f"2022-11-02,{NOV_1 + DAY},49,{address},-3,12",
    ]


def patch_job(monkeypatch, output, chain, balances, start_date, end_date, address, report_tz="UTC"):
    monkeypatch.setattr(job, "START_DATE", start_date)
    monkeypatch.setattr(job, "END_DATE", end_date)
    monkeypatch.setattr(job, "REPORT_TZ", report_tz)
    monkeypatch.setattr(job, "ADDRESSES", address)
    monkeypatch.setattr(job, "OUTPUT_PATH", str(output))
    monkeypatch.setattr(job, "load_rpc_configs", lambda path: {})
    monkeypatch.setattr(
        job,
        "build_reporter",
        lambda configs, chain_name, tz: TimelineReporter(BlockLocator(chain), balances, tz=tz),
    )


def test_run_balance_report_rejects_inverted_dates(monkeypatch, tmp_path):
    address = "0xddbd2b932c763ba5b1b7ae3b362eac3e8d40121a"
    chain = FakeChain.from_fn(lambda n: NOV_1 - DAY + 3600 * (n - 1), 24 * 5)
    output = tmp_path / "balance_report.csv"
    patch_job(monkeypatch, output, chain, FakeBalances({}), "2022-11-02", "2022-11-01", address)

    with pytest.raises(InvalidRange):
        job.run_balance_report()
    assert not output.exists()
    assert chain.head_fetches == 0


def test_run_balance_report_one_row_per_local_day_across_dst(monkeypatch, tmp_path):
    address = "0xddbd2b932c763ba5b1b7ae3b362eac3e8d40121a"
    oct_31 = date_to_timestamp("2023-10-31", job.load_timezone("America/New_York"))
    # one block per hour from local midnight 2023-10-31
    chain = FakeChain.from_fn(lambda n: oct_31 + 3600 * (n - 1), 24 * 12)
    balances = FakeBalances({address: defaultdict(int)})
    output = tmp_path / "balance_report.csv"
    patch_job(
        monkeypatch, output, chain, balances, "2023-11-01", "2023-11-08", address,
        report_tz="America/New_York",
    )

    assert job.run_balance_report() == 8
    dates = [line.split(",")[0] for line in output.read_text().splitlines()[1:]]
    assert dates == [f"2023-11-0{d}" for d in range(1, 9)]


def test_main_exits_nonzero_on_report_error(monkeypatch):
    monkeypatch.setattr(job, "METRICS_PORT", None)
    monkeypatch.setattr(job, "START_DATE", None)

    with pytest.raises(SystemExit) as exc_info:
        job.main()
    assert exc_info.value.code == 1


def test_example_config_is_valid_json():
    assert "eth" in json.loads(EXAMPLE_CONFIG.read_text())["chains"]
