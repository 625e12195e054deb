"""Job list endpoint."""
