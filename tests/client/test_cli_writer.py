import asyncio
import csv
import gzip
from datetime import datetime, timedelta, timezone

import pytest

import cb_client.cli as cli
from cb_client import settings
from cb_client.types import CandleStick
from cb_client.writer import CANDLE_HEADER, write_candles_csv


def _candle(ts):
    return CandleStick(time=ts, low=1.0, high=2.5, open=1.25, close=2.0, volume=10.123456)


def test_write_candles_csv_plain(tmp_path):
    path = tmp_path / "out" / "data.csv"

    n = write_candles_csv(path, [_candle(1504346400.0)])

    rows = list(csv.reader(path.read_text(encoding="utf-8").splitlines()))
    assert n == 1
    assert rows[0] == CANDLE_HEADER
    assert rows[1] == ["2017-09-02T10:00:00.00000Z", "1504346400", "2.5000", "1.0000", "1.2500", "2.0000", "10.1235"]


def test_write_candles_csv_gzip(tmp_path):
    path = tmp_path / "data.csv.gz"

    write_candles_csv(path, [_candle(1504346400.0), _candle(1504346460.0)])

    with gzip.open(path, "rt", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert len(rows) == 3
    assert rows[2][1] == "1504346460"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("8760h", timedelta(hours=8760)),
        ("90m", timedelta(minutes=90)),
        ("1h30m15s", timedelta(hours=1, minutes=30, seconds=15)),
        ("1.5h", timedelta(minutes=90)),
        ("", None),
        ("10d", None),
        ("h", None),
    ],
)
def test_parse_duration(raw, expected):
    assert cli.parse_duration(raw) == expected


def test_fetch_history_skips_failed_windows(monkeypatch, backend, anon_client, tmp_path, caplog):
    monkeypatch.setattr(settings, "CANDLE_THROTTLE_MS", -1)
    t0 = datetime(2017, 9, 2, 10, 0, tzinfo=timezone.utc)

    def handler(call):
        start = call.query["start"]
        if start.startswith("2017-09-02T15"):
            return {"message": "boom"}, 500
        ts = int(datetime.strptime(start[:19], "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc).timestamp())
        return [[ts, 1, 2, 1.5, 1.8, 4]], 200

    backend.route("GET", "/products/ETH-USD/candles", handler=handler)
    out = tmp_path / "data.csv"

    total = asyncio.run(cli.fetch_history(anon_client, "ETH-USD", t0, t0 + timedelta(hours=15), out))

    lines = out.read_text(encoding="utf-8").splitlines()
    assert total == 2
    assert len(lines) == 3
    assert sorted(line.split(",")[1] for line in lines[1:]) == ["1504346400", "1504382400"]
    assert "Window #1 failed" in caplog.text


def test_main_wires_arguments(monkeypatch, tmp_path):
    seen = {}

    async def fake_fetch(client, product, start, end, out_path, granularity_s=0):
        seen.update(product=product, span=end - start, out=out_path, granularity=granularity_s, client=client)
        return 0

    monkeypatch.setattr(cli, "fetch_history", fake_fetch)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **k: None)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("api_key: k\napi_secret: s\n", encoding="utf-8")

    rc = cli.main(["--product", "BTC-USD", "--dur-ago", "2h", "--out", str(tmp_path / "x.csv"), "--granularity", "60", "--config", str(cfg)])

    assert rc == 0
    assert seen["product"] == "BTC-USD"
    assert seen["span"] == timedelta(hours=2)
    assert seen["granularity"] == 60
    assert seen["client"].has_credentials()


def test_main_falls_back_on_bad_duration(monkeypatch, tmp_path):
    seen = {}

    async def fake_fetch(client, product, start, end, out_path, granularity_s=0):
        seen["span"] = end - start
        return 0

    monkeypatch.setattr(cli, "fetch_history", fake_fetch)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **k: None)

    cli.main(["--dur-ago", "yesterday", "--out", str(tmp_path / "x.csv")])

    assert seen["span"] == cli.DEFAULT_DURATION
