"""Core tree logic: settings, stores, hierarchy maintenance and queries."""
