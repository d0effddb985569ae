"""Post-commit monitors."""
