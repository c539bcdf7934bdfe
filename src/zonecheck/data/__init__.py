"""Warehouse data access."""
