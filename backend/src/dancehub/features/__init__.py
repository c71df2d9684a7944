"""Feature routes: entity configurations and hand-written endpoints."""
