"""
Status lifecycle engine.

Each document type has an explicit table of transitions. A transition
names the action, the statuses it may start from, the status it ends in
and the timestamp fields it stamps. Applying an action from any other
status raises IllegalTransitionError; nothing is ever silently ignored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from bizdocs.exceptions import IllegalTransitionError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    action: str
    sources: frozenset
    target: str
    stamps: tuple = ()
    # Field receiving the actor (e.g. approved_by), required when set
    actor_field: Optional[str] = None
    # Field receiving the reason (e.g. rejection_reason), required when set
    reason_field: Optional[str] = None
    # Date fields set to the day of the transition
    date_stamps: tuple = ()


class StatusMachine:
    """Finite state machine for one document type."""

    def __init__(self, document: str, states: tuple, transitions: list, terminal: tuple = ()):
        self.document = document
        self.states = states
        self.terminal = frozenset(terminal)
        self.transitions = {t.action: t for t in transitions}

    def can_apply(self, status: str, action: str) -> bool:
        transition = self.transitions.get(action)
        return transition is not None and status in transition.sources

    def allowed_actions(self, status: str) -> list[str]:
        return [action for action, t in self.transitions.items() if status in t.sources]

    def apply(
        self,
        document,
        action: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ):
        """Move document to the action's target status and stamp it.

        Mutates and returns the document. The caller commits.
        """
        transition = self.transitions.get(action)
        current = document.status
        if transition is None or current not in transition.sources:
            raise IllegalTransitionError(action, current, self.document)

        if transition.actor_field and not (actor and actor.strip()):
            raise ValidationError(
                f"{transition.actor_field} is required to {action} a {self.document}",
                errors=[{"field": transition.actor_field, "message": "is required", "type": "missing"}],
            )
        if transition.reason_field and not (reason and reason.strip()):
            raise ValidationError(
                f"A reason is required to {action} a {self.document}",
                errors=[{"field": "reason", "message": "is required", "type": "missing"}],
            )

        now = now or datetime.now(timezone.utc)
        document.status = transition.target
        for field in transition.stamps:
            setattr(document, field, now)
        for field in transition.date_stamps:
            setattr(document, field, now.date())
        if transition.actor_field:
            setattr(document, transition.actor_field, actor.strip())
        if transition.reason_field:
            setattr(document, transition.reason_field, reason.strip())

        logger.info(
            f"{self.document} {getattr(document, 'id', None)}: {action} ({current} -> {transition.target})"
        )
        return document


QUOTE_LIFECYCLE = StatusMachine(
    "quote",
    states=("draft", "sent", "viewed", "accepted", "rejected", "expired"),
    transitions=[
        Transition("send", frozenset({"draft"}), "sent", stamps=("sent_at",)),
        Transition("view", frozenset({"sent"}), "viewed", stamps=("viewed_at",)),
        Transition("accept", frozenset({"sent", "viewed"}), "accepted", stamps=("accepted_at",)),
        Transition(
            "reject", frozenset({"sent", "viewed"}), "rejected",
            stamps=("rejected_at",), reason_field="rejection_reason",
        ),
        Transition("expire", frozenset({"sent", "viewed"}), "expired"),
    ],
    terminal=("rejected", "expired"),
)

INVOICE_LIFECYCLE = StatusMachine(
    "invoice",
    states=("draft", "sent", "paid", "overdue", "cancelled"),
    transitions=[
        Transition("send", frozenset({"draft"}), "sent", stamps=("sent_at",)),
        Transition("mark_paid", frozenset({"draft", "sent", "overdue"}), "paid", stamps=("paid_at",)),
        Transition("mark_overdue", frozenset({"sent"}), "overdue"),
        Transition("cancel", frozenset({"draft", "sent", "overdue"}), "cancelled", stamps=("cancelled_at",)),
    ],
    terminal=("paid", "cancelled"),
)

PURCHASE_ORDER_LIFECYCLE = StatusMachine(
    "purchase order",
    states=("draft", "sent", "confirmed", "in_progress", "completed", "cancelled"),
    transitions=[
        Transition("send", frozenset({"draft"}), "sent", stamps=("sent_at",)),
        Transition(
            "confirm", frozenset({"sent"}), "confirmed",
            stamps=("confirmed_at", "approved_at"), actor_field="approved_by",
        ),
        Transition("start", frozenset({"confirmed"}), "in_progress", stamps=("started_at",)),
        Transition(
            "complete", frozenset({"confirmed", "in_progress"}), "completed",
            stamps=("completed_at",), date_stamps=("actual_delivery_date",),
        ),
        Transition(
            "cancel", frozenset({"draft", "sent", "confirmed", "in_progress"}), "cancelled",
            stamps=("cancelled_at",),
        ),
    ],
    terminal=("completed", "cancelled"),
)
