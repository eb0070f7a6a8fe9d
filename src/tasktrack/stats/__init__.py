"""Derived, read-only views over the task store (distribution, weekly, daily)."""
