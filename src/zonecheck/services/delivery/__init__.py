"""Delivery eligibility services."""
