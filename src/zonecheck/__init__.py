"""Delivery zone resolution and cart delivery validation service."""

__version__ = "0.1.0"
