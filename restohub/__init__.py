"""RestoHub restaurant management API."""
