"""HTTP API for the account directory."""
