"""councilhub package."""
