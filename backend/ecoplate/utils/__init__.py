"""Small, dependency-free helpers shared across services (dates, geo, files)."""
