"""Locust scenarios (user classes and load shapes) for zipload runs."""
