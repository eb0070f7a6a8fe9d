"""Small pure helpers (formatting, parsing)."""
