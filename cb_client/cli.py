from __future__ import annotations

import argparse
import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from cb_client import settings
from cb_client.client import Client
from cb_client.logging_config import setup_logging
from cb_client.transport import Credentials
from cb_client.types import CandleStickRequest
from cb_client.writer import CandleCSVWriter


log = logging.getLogger("cb_client.cli")

DEFAULT_DURATION = timedelta(days=365)

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_UNIT_S = {"h": 3600.0, "m": 60.0, "s": 1.0}


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse strings like 8760h, 90m, 1h30m or 45s; None when unparseable."""
    raw = (value or "").strip().lower()
    if not raw:
        return None
    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(raw):
        if m.start() != pos:
            return None
        total += float(m.group(1)) * _UNIT_S[m.group(2)]
        pos = m.end()
    if pos != len(raw):
        return None
    return timedelta(seconds=total)


def _build_client(config_path: Optional[str]) -> Client:
    client = Client()
    if config_path:
        creds = settings.credentials_from_config(settings.load_config(config_path))
        if creds is not None:
            client.set_credentials(Credentials(**creds))
    return client


async def fetch_history(
    client: Client,
    product: str,
    start: datetime,
    end: datetime,
    out_path: Path,
    granularity_s: int = 0,
) -> int:
    req = CandleStickRequest(product=product, start=start, end=end, granularity_s=granularity_s)
    stream = await client.candle_sticks(req)
    failed = 0
    async with stream:
        with CandleCSVWriter(out_path) as writer:
            async for page in stream:
                if not page.ok:
                    failed += 1
                    log.warning("Window #%d failed: %s", page.page_number, page.error)
                    continue
                if not page.items:
                    continue
                writer.write(page.items)
                log.info("Flushed window #%d (%d candles)", page.page_number, len(page.items))
            total = writer.rows
    log.info("Wrote %d candles to %s (failed windows=%d)", total, out_path, failed)
    return total


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Download historic candles for a product into a CSV file.")
    ap.add_argument("--product", default="ETH-USD", help="Product id (default: ETH-USD)")
    ap.add_argument("--dur-ago", default="8760h", help="How far back to go, e.g. 8760h or 90m (default: 8760h)")
    ap.add_argument("--out", default="data.csv", help="Output path; .gz suffix compresses (default: data.csv)")
    ap.add_argument("--granularity", type=int, default=0, help="Candle granularity in seconds (default: server choice)")
    ap.add_argument("--config", default=None, help="Optional YAML file with api_key/api_secret/passphrase")
    ap.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = ap.parse_args(argv)

    setup_logging(args.log_level)

    duration = parse_duration(args.dur_ago)
    if duration is None or duration <= timedelta(0):
        log.warning("Invalid --dur-ago %r, using %s", args.dur_ago, DEFAULT_DURATION)
        duration = DEFAULT_DURATION

    end = datetime.now(timezone.utc)
    start = end - duration
    client = _build_client(args.config)
    asyncio.run(fetch_history(client, args.product, start, end, Path(args.out), args.granularity))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
