from .trail import AuditTrail

__all__ = ["AuditTrail"]
