"""
Approval Coordinator
====================

Multi-approver protocol for transitions flagged ``requires_approval``.

Opening an approval freezes the approver pool (holders of the
transition's approval role in the ticket's tenant, capped at the
configured pool size) and parks the ticket in ``awaiting_approval``.
Unanimous approval finalizes the transition; the first rejection sends
the ticket back to the status it held before.
"""

from typing import Any, Callable, Dict, List, Optional

from ticketflow.config import AWAITING_APPROVAL, ApprovalDecision, settings
from ticketflow.core import (
    ConfigurationException,
    InvalidTransitionError,
    ResourceNotFoundException,
)
from ticketflow.core.unit_of_work import AbstractUnitOfWork
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.workflow.application.services import TransitionExecutor
from ticketflow.workflow.domain import (
    Actor,
    ApprovalOutcome,
    ApprovalOutcomeKind,
    Ticket,
    TicketApproval,
    TicketComment,
    Transition,
    TransitionHistory,
)

logger = get_logger(__name__)

SUBMITTED_COMMENT = "Submitted for approval"
APPROVED_HISTORY_COMMENT = "Approved by all approvers"
APPROVED_VISIBLE_COMMENT = "All approvals received. Transition completed."


class ApprovalCoordinator:
    """Opens approvals, records responses and settles the quorum."""

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        executor: TransitionExecutor,
        default_role: Optional[str] = None,
        pool_size: Optional[int] = settings.approval_pool_size,
    ):
        self._uow_factory = uow_factory
        self._executor = executor
        self._default_role = default_role or settings.default_approval_role
        self._pool_size = pool_size

    # ---------- opening ----------

    async def open_approval(
        self,
        ticket_id: str,
        transition_id: str,
        requester: Actor,
        comment: Optional[str] = None,
    ) -> str:
        """
        Open an approval for a transition of the ticket's current status.

        Only the transition's own status precondition is checked here; the
        engine runs the role and field guards before delegating.
        """
        async with self._uow_factory() as uow:
            ticket = await uow.tickets.get(ticket_id, for_update=True)
            if ticket is None or ticket.is_deleted:
                raise ResourceNotFoundException("Ticket", ticket_id)

            workflow = await uow.workflows.get_active_for_type(ticket.type)
            transition = workflow.get_transition(transition_id) if workflow else None
            if transition is None or transition.from_status != ticket.status:
                raise InvalidTransitionError(ticket.id, ticket.status)

            approval = await self.open_within(uow, ticket, transition, requester, comment=comment)
            await uow.commit()
        return approval.id

    async def open_within(
        self,
        uow: AbstractUnitOfWork,
        ticket: Ticket,
        transition: Transition,
        requester: Actor,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TicketApproval:
        """
        Open an approval inside the caller's unit of work.

        Raises:
            ConfigurationException: Nobody holds the approval role
        """
        role = transition.approval_role or self._default_role
        approvers = await uow.users.list_ids_with_role(role, ticket.tenant_id, limit=self._pool_size)
        if not approvers:
            raise ConfigurationException(
                f"No approvers hold role '{role}'",
                {"ticket_id": ticket.id, "transition_id": transition.id, "approval_role": role}
            )

        now = self._executor.clock()
        approval = TicketApproval.open(
            ticket.id, transition.id, requester.id, approvers, ticket.status, now
        )
        await uow.approvals.add(approval)

        previous_status = await self._executor.move(uow, ticket, AWAITING_APPROVAL, requester.id, now)
        await uow.history.add(TransitionHistory.record(
            ticket.id,
            transition.id,
            previous_status,
            AWAITING_APPROVAL,
            requester.id,
            now,
            comment=comment or SUBMITTED_COMMENT,
            metadata=metadata,
        ))

        self._executor.emit(
            uow, requester.id, "transition.approval_requested", ticket.id,
            f"Requested approval for transition: {transition.name}"
        )
        logger.info(
            "Approval requested",
            extra={
                "approval_id": approval.id,
                "ticket_id": ticket.id,
                "transition_id": transition.id,
                "approver_count": len(approvers),
            }
        )
        return approval

    # ---------- responding ----------

    async def respond_to_approval(
        self,
        approval_id: str,
        user_id: str,
        response: ApprovalDecision,
        notes: Optional[str] = None,
    ) -> ApprovalOutcome:
        """
        Record one approver's answer.

        Raises:
            ResourceNotFoundException: Approval does not exist
            ApprovalNotPendingError: Approval already settled
            ForbiddenError: User is not in the frozen approver set
            DuplicateResponseError: User already answered
            TransitionFailedError: Final approval's actions failed (rolled back)
        """
        response = ApprovalDecision(response)

        async with self._uow_factory() as uow:
            approval = await uow.approvals.get(approval_id, for_update=True)
            if approval is None:
                raise ResourceNotFoundException("Approval", approval_id)

            ticket = await uow.tickets.get(approval.ticket_id, for_update=True)
            if ticket is None or ticket.is_deleted:
                raise ResourceNotFoundException("Ticket", approval.ticket_id)

            now = self._executor.clock()
            recorded = approval.record_response(user_id, response, notes, now)
            await uow.approvals.add_response(recorded)

            if response == ApprovalDecision.REJECTED:
                kind = await self._reject(uow, approval, ticket, user_id, notes)
            elif approval.quorum_reached:
                kind = await self._finalize(uow, approval, ticket, user_id)
            else:
                kind = ApprovalOutcomeKind.PARTIAL
                self._executor.emit(
                    uow, user_id, "approval.approved", ticket.id, "Approved transition"
                )

            await uow.approvals.save(approval)
            await uow.commit()

        logger.info(
            "Approval response recorded",
            extra={
                "approval_id": approval.id,
                "ticket_id": ticket.id,
                "user_id": user_id,
                "response": response.value,
                "outcome": kind.value,
            }
        )
        return ApprovalOutcome(
            kind=kind,
            approval_id=approval.id,
            ticket_id=ticket.id,
            status=approval.status,
            ticket_status=ticket.status,
            approved_count=approval.approved_count,
            required_count=len(approval.required_approvers),
        )

    async def _reject(
        self,
        uow: AbstractUnitOfWork,
        approval: TicketApproval,
        ticket: Ticket,
        user_id: str,
        notes: Optional[str],
    ) -> ApprovalOutcomeKind:
        now = self._executor.clock()
        await self._executor.move(uow, ticket, approval.previous_status, user_id, now)
        await uow.comments.add(TicketComment.new(
            ticket.id,
            user_id,
            f"Approval rejected: {notes or 'No reason provided'}",
            now,
            is_internal=True,
        ))
        self._executor.emit(uow, user_id, "approval.rejected", ticket.id, "Rejected approval")
        return ApprovalOutcomeKind.REJECTED

    async def _finalize(
        self,
        uow: AbstractUnitOfWork,
        approval: TicketApproval,
        ticket: Ticket,
        user_id: str,
    ) -> ApprovalOutcomeKind:
        workflow = await uow.workflows.get_active_for_type(ticket.type)
        transition = workflow.get_transition(approval.transition_id) if workflow else None
        if transition is None:
            raise ConfigurationException(
                "Approved transition is no longer part of the active workflow",
                {"approval_id": approval.id, "transition_id": approval.transition_id}
            )

        await self._executor.apply(
            uow,
            ticket,
            transition,
            user_id,
            history_comment=APPROVED_HISTORY_COMMENT,
            visible_comment=APPROVED_VISIBLE_COMMENT,
        )
        self._executor.emit(
            uow, user_id, "approval.completed", ticket.id, "All approvals received"
        )
        return ApprovalOutcomeKind.APPROVED

    # ---------- queries ----------

    async def get_pending_approvals(self, user_id: str) -> List[TicketApproval]:
        async with self._uow_factory() as uow:
            return await uow.approvals.list_pending_for_user(user_id)

    async def get_approval(self, approval_id: str) -> TicketApproval:
        async with self._uow_factory() as uow:
            approval = await uow.approvals.get(approval_id)
        if approval is None:
            raise ResourceNotFoundException("Approval", approval_id)
        return approval
