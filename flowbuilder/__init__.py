"""Visual workflow builder core."""
