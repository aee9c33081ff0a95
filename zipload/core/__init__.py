"""Core models and helpers for zipload runs."""
