"""Request handling for the API routes."""
