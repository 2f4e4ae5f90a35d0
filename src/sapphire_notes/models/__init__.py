"""Data models for Sapphire Notes."""
