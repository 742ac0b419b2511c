"""Match core: validation, projection, and the match controller."""
