"""Domain models: rule templates, match events, projected match state."""
