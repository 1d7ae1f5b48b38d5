"""Data models for the Strata vault."""
