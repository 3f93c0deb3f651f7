"""Domain services: contest store, synchronization and queries."""
