"""Building blocks for relaying log and metric envelopes: diodes, metrics, batching and fan-in."""

__version__ = "0.1.0"