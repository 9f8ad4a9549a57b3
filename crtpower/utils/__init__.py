"""Validation, formatting and plotting helpers."""
