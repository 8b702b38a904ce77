"""Shared helpers: timestamps, TTL and pagination."""
