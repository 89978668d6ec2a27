"""
Exchange Feed Presets

Ready-made RealtimeFeed builders for public exchange streams
(Binance, Kraken, Coinbase) and for token-authenticated endpoints.
"""
