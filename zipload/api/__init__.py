"""Summary building and artifact writing for zipload runs."""
