"""Synthetic biometric data generator and ClickHouse bulk loader."""

__version__ = "0.1.0"
