"""Step definitions for feature files."""
