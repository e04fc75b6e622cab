"""Bailiff test suite."""
