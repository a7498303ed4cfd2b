"""Pydantic models for the API contract and for records passed between layers."""
