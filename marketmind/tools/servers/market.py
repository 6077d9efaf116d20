"""
Market data tool server.

Provides: get_stock_quote (Finnhub real-time quote) and
compute_ohlcv_metrics (summary statistics over OHLCV rows).

Run as:
    python -m marketmind.tools.servers.market

Requires FINNHUB_API_KEY in the environment for quotes.
"""

from __future__ import annotations

import math
import os
import sys
from typing import Any

import httpx
from dotenv import load_dotenv

from marketmind.tools.server import StdioToolServer, ToolHandler, ToolOutput

FINNHUB_QUOTE_URL = "https://finnhub.io/api/v1/quote"


def compute_ohlcv_metrics(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Summarize a chronological list of OHLCV rows.

    Each row is {date, open, high, low, close, volume}; any price may be
    None. Daily returns chain from the last non-null close, gaps compare a
    row's open with that same previous close. Returns and gaps are
    fractions (0.02 == 2%), pct_change is in percent, and volatility is the
    sample standard deviation of daily returns.
    """
    if not rows:
        return {
            "start_close": None,
            "end_close": None,
            "pct_change": None,
            "max_daily_return": None,
            "min_daily_return": None,
            "max_gap_up": None,
            "max_gap_down": None,
            "volatility": None,
            "count": 0,
        }

    closes = [r.get("close") for r in rows if r.get("close") is not None]
    first_close = closes[0] if closes else None
    last_close = closes[-1] if closes else None

    pct_change = None
    if first_close is not None and last_close is not None and first_close != 0:
        pct_change = (last_close / first_close - 1) * 100

    daily_returns: list[float] = []
    max_gap_up = None
    max_gap_down = None
    prev_close = None

    for row in rows:
        close = row.get("close")
        open_ = row.get("open")

        if prev_close is not None and prev_close != 0:
            if close is not None:
                daily_returns.append(close / prev_close - 1)
            if open_ is not None:
                gap = open_ / prev_close - 1
                if gap > 0 and (max_gap_up is None or gap > max_gap_up):
                    max_gap_up = gap
                elif gap < 0 and (max_gap_down is None or gap < max_gap_down):
                    max_gap_down = gap

        if close is not None:
            prev_close = close

    volatility = None
    if len(daily_returns) > 1:
        mean = sum(daily_returns) / len(daily_returns)
        variance = sum((r - mean) ** 2 for r in daily_returns) / (len(daily_returns) - 1)
        volatility = math.sqrt(variance)

    return {
        "start_close": first_close,
        "end_close": last_close,
        "pct_change": pct_change,
        "max_daily_return": max(daily_returns) if daily_returns else None,
        "min_daily_return": min(daily_returns) if daily_returns else None,
        "max_gap_up": max_gap_up,
        "max_gap_down": max_gap_down,
        "volatility": volatility,
        "count": len(rows),
    }


class StockQuoteTool(ToolHandler):
    name = "get_stock_quote"
    description = "Fetch a real-time quote from Finnhub for a given stock symbol."
    parameters = {
        "symbol": {
            "type": "string",
            "description": "Ticker symbol, e.g. AAPL, TSLA, 700.HK",
        },
    }
    required = ["symbol"]

    def __init__(self, api_key: str | None = None, client: httpx.Client | None = None):
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=15.0)

    def handle(self, params: dict[str, Any]) -> Any:
        symbol = str(params.get("symbol", "")).strip().upper()
        if not symbol:
            return "No symbol provided."
        if not self.api_key:
            return "FINNHUB_API_KEY not set in environment variables."

        try:
            response = self.client.get(
                FINNHUB_QUOTE_URL, params={"symbol": symbol, "token": self.api_key}
            )
        except httpx.HTTPError as e:
            return f"Error fetching data: {e}"

        if response.status_code != 200:
            return f"HTTP error from Finnhub: {response.status_code} {response.reason_phrase}"

        d = response.json()
        quote = {
            "symbol": symbol,
            "current": d.get("c"),
            "high": d.get("h"),
            "low": d.get("l"),
            "open": d.get("o"),
            "prevClose": d.get("pc"),
            "raw": d,
        }
        text = (
            f"Quote for {symbol}: current={quote['current']}, high={quote['high']}, "
            f"low={quote['low']}, open={quote['open']}, prevClose={quote['prevClose']}"
        )
        return ToolOutput(text=text, structured=quote)


class OHLCVMetricsTool(ToolHandler):
    name = "compute_ohlcv_metrics"
    description = (
        "Compute summary metrics (percent change, daily return extremes, "
        "gaps, volatility) from historical OHLCV rows."
    )
    parameters = {
        "rows": {
            "type": "array",
            "description": "Chronological rows of {date, open, high, low, close, volume}",
            "items": {
                "type": "object",
                "properties": {
                    "date": {"type": "string"},
                    "open": {"type": ["number", "null"]},
                    "high": {"type": ["number", "null"]},
                    "low": {"type": ["number", "null"]},
                    "close": {"type": ["number", "null"]},
                    "volume": {"type": ["number", "null"]},
                },
            },
        },
    }
    required = ["rows"]

    def handle(self, params: dict[str, Any]) -> Any:
        rows = params.get("rows") or []
        if not isinstance(rows, list):
            raise ValueError("rows must be an array of OHLCV objects")
        return compute_ohlcv_metrics(rows)


def main():
    load_dotenv()
    server = StdioToolServer("market-server", "0.1.0")
    server.register(StockQuoteTool(api_key=os.getenv("FINNHUB_API_KEY")))
    server.register(OHLCVMetricsTool())
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Failed to run market-server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
