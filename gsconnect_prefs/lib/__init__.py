"""Building blocks for the GSConnect preferences window."""
