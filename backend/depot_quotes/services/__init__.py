"""Business services for ticker resolution and quote lookups."""
