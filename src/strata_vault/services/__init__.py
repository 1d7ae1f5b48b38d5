"""Service layer for the Strata vault."""
