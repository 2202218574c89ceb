"""Local HTTP daemon serving the search API."""
