"""Page loading and field extraction."""
