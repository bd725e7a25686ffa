"""Utilities shared by the NodeSync audit components."""
