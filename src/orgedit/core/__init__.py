"""Data model, host protocols and the in-memory text buffer."""
