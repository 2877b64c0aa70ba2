"""Pydantic schemas for domain objects and API payloads."""
