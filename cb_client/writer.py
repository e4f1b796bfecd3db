from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable
import csv
import gzip

from cb_client.normalizer import iso8601
from cb_client.types import CandleStick

CANDLE_HEADER = ["date", "timeEpoch", "high", "low", "open", "close", "volume"]


def _open_text(path: Path) -> IO[str]:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".gz":
        return gzip.open(path, "wt", encoding="utf-8", newline="")
    return open(path, "w", encoding="utf-8", newline="")


def _candle_row(candle: CandleStick) -> list:
    return [
        iso8601(candle.timestamp),
        int(candle.time),
        f"{candle.high:.4f}",
        f"{candle.low:.4f}",
        f"{candle.open:.4f}",
        f"{candle.close:.4f}",
        f"{candle.volume:.4f}",
    ]


class CandleCSVWriter:
    """Incremental candle CSV; the header goes out on open, rows per write()."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._fh = _open_text(self.path)
        self._writer = csv.writer(self._fh)
        self._writer.writerow(CANDLE_HEADER)
        self.rows = 0

    def write(self, candles: Iterable[CandleStick]) -> int:
        n = 0
        for candle in candles:
            self._writer.writerow(_candle_row(candle))
            n += 1
        self._fh.flush()
        self.rows += n
        return n

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "CandleCSVWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def write_candles_csv(path: Path | str, candles: Iterable[CandleStick]) -> int:
    with CandleCSVWriter(path) as writer:
        return writer.write(candles)
