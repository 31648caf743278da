"""Prediction-market trade ledger: positions, realized P/L and whale alerts."""

__version__ = "0.1.0"
