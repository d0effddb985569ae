"""Claim workflow engine: role-gated approvals with real-time notifications."""

__version__ = "1.0.0"
