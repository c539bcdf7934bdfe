"""Road routing client and distance estimates."""
