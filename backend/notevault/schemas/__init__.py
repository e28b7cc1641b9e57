"""Pydantic schemas for NoteVault."""
