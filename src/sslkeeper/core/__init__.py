"""Core types, errors, and naming rules shared by every layer."""
