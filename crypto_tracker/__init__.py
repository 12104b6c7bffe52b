"""
Crypto Tracker - Freshness-Tiered Market Data Sync Engine

Keeps batched spot prices and per-coin OHLC candles fresh on the client
using a two-threshold (fresh/stale) cache, shields the upstream provider
with a shared server-side cache, and evaluates user price alerts against
every committed price snapshot.
"""

__version__ = "0.1.0"
__author__ = "Crypto Tracker Team"
