"""Store clients."""
