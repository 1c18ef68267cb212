"""HTTP review API."""
