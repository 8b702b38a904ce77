"""Counters, order transactions and collaborators of the data-access core."""
