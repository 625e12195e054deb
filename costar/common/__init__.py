"""Small helpers shared across the crawler, scheduler, and API layers."""
