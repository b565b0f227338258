"""Resilient economic and market indicator access with correlation analysis."""

__version__ = "0.1.0"
