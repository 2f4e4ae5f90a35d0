"""Service layer for Sapphire Notes."""
