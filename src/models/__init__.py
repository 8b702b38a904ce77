"""Models for the shop catalog."""
