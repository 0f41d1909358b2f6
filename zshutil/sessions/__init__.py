"""Session transcript search."""
