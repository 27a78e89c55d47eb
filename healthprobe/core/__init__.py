"""Shared infrastructure for the health probe."""
