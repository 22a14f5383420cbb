"""Derived metrics for reseller inventory: cost basis, profit, health and tier limits."""

__version__ = "1.0.0"
