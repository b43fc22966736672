"""Background computation engine for price/volume time series.

Indicators, chunked sorting, filtering and OHLCV aggregation behind a
request/response task protocol.
"""

__version__ = "0.1.0"
