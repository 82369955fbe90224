"""
Approval Domain Entities
========================

Multi-approver sign-off on a guarded transition.

Quorum is unanimous: every member of the approver set frozen at creation
must approve, and the first rejection finalizes the approval as rejected.
``pending`` is the only non-terminal state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from uuid import uuid4

from ticketflow.config import ApprovalDecision, ApprovalStatus
from ticketflow.core import ApprovalNotPendingError, DuplicateResponseError, ForbiddenError


@dataclass(frozen=True)
class ApprovalResponse:
    """One approver's answer. Unique per (approval, user)."""

    id: str
    approval_id: str
    user_id: str
    response: ApprovalDecision
    response_notes: Optional[str]
    responded_at: datetime


class ApprovalOutcomeKind(str, Enum):
    PARTIAL = "partial"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of recording one response."""

    kind: ApprovalOutcomeKind
    approval_id: str
    ticket_id: str
    status: ApprovalStatus
    ticket_status: str
    approved_count: int
    required_count: int


@dataclass
class TicketApproval:
    """
    Approval record for one pending transition.

    Invariants:
    - ``required_approvers`` is fixed at creation
    - approved and rejected are terminal and mutually exclusive
    """

    id: str
    ticket_id: str
    transition_id: str
    requested_by: str
    required_approvers: Tuple[str, ...]
    previous_status: str
    requested_at: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: List[str] = field(default_factory=list)
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    responses: List[ApprovalResponse] = field(default_factory=list)

    @classmethod
    def open(
        cls,
        ticket_id: str,
        transition_id: str,
        requested_by: str,
        approvers: List[str],
        previous_status: str,
        now: datetime,
    ) -> "TicketApproval":
        return cls(
            id=str(uuid4()),
            ticket_id=ticket_id,
            transition_id=transition_id,
            requested_by=requested_by,
            required_approvers=tuple(approvers),
            previous_status=previous_status,
            requested_at=now,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING

    @property
    def approved_count(self) -> int:
        return len(self.approved_by)

    @property
    def quorum_reached(self) -> bool:
        return self.approved_count >= len(self.required_approvers)

    def has_responded(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.responses)

    def awaits(self, user_id: str) -> bool:
        """True when the user still has to answer this pending approval."""
        return (
            self.is_pending
            and user_id in self.required_approvers
            and not self.has_responded(user_id)
        )

    def record_response(
        self,
        user_id: str,
        decision: ApprovalDecision,
        notes: Optional[str],
        now: datetime,
    ) -> ApprovalResponse:
        """
        Record one approver's answer and settle the approval if it is decided.

        Raises:
            ApprovalNotPendingError: Approval already approved or rejected
            ForbiddenError: User is not in the frozen approver set
            DuplicateResponseError: User already answered
        """
        if not self.is_pending:
            raise ApprovalNotPendingError(self.id, self.status.value)
        if user_id not in self.required_approvers:
            raise ForbiddenError(
                "You are not authorized to approve this request",
                {"approval_id": self.id, "user_id": user_id}
            )
        if self.has_responded(user_id):
            raise DuplicateResponseError(self.id, user_id)

        response = ApprovalResponse(
            id=str(uuid4()),
            approval_id=self.id,
            user_id=user_id,
            response=decision,
            response_notes=notes,
            responded_at=now,
        )
        self.responses.append(response)

        if decision == ApprovalDecision.REJECTED:
            self.status = ApprovalStatus.REJECTED
            self.rejected_by = user_id
            self.rejection_reason = notes
            self.completed_at = now
        else:
            self.approved_by.append(user_id)
            if self.quorum_reached:
                self.status = ApprovalStatus.APPROVED
                self.completed_at = now

        return response
