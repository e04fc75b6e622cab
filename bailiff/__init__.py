"""Bailiff: authorize CI runs for fork pull requests by comment."""
