"""
Process Monitor

Watches committed claim status changes and decides who has to hear about them.
"""
import logging
from typing import Callable

from claimflow.core.models import Claim
from claimflow.core.states import ClaimStatus, Role
from claimflow.notifications import events
from claimflow.notifications.events import Delivery

logger = logging.getLogger(__name__)

StatusHandler = Callable[[Claim, Role | None], list[Delivery]]


class ProcessMonitor:
    """
    Maps a committed status change to the notifications it should produce.

    Handlers are registered per entered status and run in registration order,
    so role-group notices go out before the owner update and the broadcast.
    """

    def __init__(self, broadcast_topic: str = "All"):
        self.broadcast_topic = broadcast_topic
        self._event_handlers: dict[ClaimStatus, list[StatusHandler]] = {}

        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        self.register_handler(ClaimStatus.SUBMITTED, self._on_submitted)
        self.register_handler(ClaimStatus.WITH_MANAGER, self._on_coordinator_approved)
        self.register_handler(ClaimStatus.APPROVED, self._on_manager_approved)

        for status in ClaimStatus:
            if status != ClaimStatus.DRAFT:
                self.register_handler(status, self._notify_owner)
                self.register_handler(status, self._broadcast)

    def register_handler(self, status: ClaimStatus, handler: StatusHandler) -> None:
        """
        Register a handler to be called when a claim enters a status.

        Args:
            status: The status that triggers the handler
            handler: Function returning (topic, event) pairs to publish
        """
        self._event_handlers.setdefault(status, []).append(handler)
        logger.debug(f"Registered handler {getattr(handler, '__name__', handler)} for {status.value}")

    def _on_submitted(self, claim: Claim, actor_role: Role | None) -> list[Delivery]:
        return [(events.COORDINATORS, events.new_claim_submitted(claim.claim_id, claim.lecturer_id))]

    def _on_coordinator_approved(self, claim: Claim, actor_role: Role | None) -> list[Delivery]:
        return [(events.MANAGERS, events.coordinator_approved(claim.claim_id))]

    def _on_manager_approved(self, claim: Claim, actor_role: Role | None) -> list[Delivery]:
        return [(events.HR, events.manager_approved(claim.claim_id))]

    def _notify_owner(self, claim: Claim, actor_role: Role | None) -> list[Delivery]:
        return [(events.owner_topic(claim.lecturer_id), events.status_changed(claim.claim_id, claim.status))]

    def _broadcast(self, claim: Claim, actor_role: Role | None) -> list[Delivery]:
        # Owner submissions are not approver actions and are not broadcast
        if actor_role is None:
            return []
        return [
            (self.broadcast_topic, events.claim_status_broadcast(claim.claim_id, claim.status, actor_role))
        ]

    def on_status_entered(self, claim: Claim, actor_role: Role | None = None) -> list[Delivery]:
        """
        Called once a claim's new status is committed.

        Args:
            claim: The claim as committed
            actor_role: Role of the approver, or None for owner actions

        Returns:
            Deliveries for the notification hub, in publish order
        """
        deliveries: list[Delivery] = []
        for handler in self._event_handlers.get(claim.status, []):
            deliveries.extend(handler(claim, actor_role))

        logger.info(
            f"Claim {claim.claim_id} entered {claim.status.value}: "
            f"{len(deliveries)} notification(s) to {sorted({t for t, _ in deliveries})}"
        )
        return deliveries
