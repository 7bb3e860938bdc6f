"""HTTP API for the allowance engine."""
