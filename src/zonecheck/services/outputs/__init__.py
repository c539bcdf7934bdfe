"""Response formatting."""
