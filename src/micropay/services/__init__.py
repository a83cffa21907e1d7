"""Service wiring shared by the API and CLI."""
