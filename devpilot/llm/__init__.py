"""Completion providers and prompt text."""
