"""Schedule read API."""
