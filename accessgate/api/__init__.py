"""FastAPI integration for the authorization engine."""
