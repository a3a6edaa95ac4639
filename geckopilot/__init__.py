"""Geckoboard dashboard automation with human confirmation."""

__version__ = "0.1.0"
