"""Rating, luck and position calculators."""
