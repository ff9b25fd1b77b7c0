"""Pydantic models for graph entities, routing and chat."""
