"""Shop catalog data-access core."""
