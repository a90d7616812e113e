"""Staged bootstrap — bootstrap, OS layer and application layer."""
