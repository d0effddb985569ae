"""Claim workflow engine and transition table."""
