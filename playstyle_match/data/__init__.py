"""Game loading and the reference player catalog."""
