"""Pydantic models shared by the REST API and the client core."""
