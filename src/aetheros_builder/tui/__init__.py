"""Interactive textual front end."""
