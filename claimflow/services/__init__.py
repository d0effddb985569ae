# Services module - the workflow façade
from .workflow import WorkflowService, WorkflowStats, PaymentBatchResult, PaymentOutcome

__all__ = ["WorkflowService", "WorkflowStats", "PaymentBatchResult", "PaymentOutcome"]
