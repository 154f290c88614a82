"""Output formatting — Rich rendering and JSON serialization of results."""
