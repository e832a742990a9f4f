"""Core application components: settings, database session, auth boundary, time helpers."""
