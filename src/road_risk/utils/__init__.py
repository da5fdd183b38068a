"""Shared utilities for configuration, logging, metrics and plotting."""
