"""Infrastructure shared by the core (logging)."""
