"""Combat core: geometry, targeting, movement, resolution and turn coordination."""
