"""Storage of desired endpoint specs."""
