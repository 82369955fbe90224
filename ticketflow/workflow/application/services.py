"""
Workflow Application Services
=============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

- ``TransitionExecutor`` applies a transition inside an open unit of work:
  status change, side-effect actions, history row, SLA hook.
- ``TransitionEngine`` validates a transition request against the ticket's
  active workflow and either applies it or hands it to the approval
  coordinator.

Every mutating call runs in one unit of work; any failure leaves the
ticket exactly as it was.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, assert_never

from ticketflow.config import settings
from ticketflow.core import (
    ActionExecutionError,
    ForbiddenError,
    InvalidTransitionError,
    MissingRequiredFieldError,
    ResourceNotFoundException,
    TransitionFailedError,
)
from ticketflow.core.unit_of_work import AbstractUnitOfWork
from ticketflow.shared.application import IActivitySink, NotificationDispatcher
from ticketflow.shared.domain.clock import Clock, utc_now
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.workflow.domain import (
    Actor,
    AddCommentAction,
    ApprovalResponse,
    AssignAction,
    NotifyAction,
    OutcomeKind,
    SetFieldAction,
    Ticket,
    TicketApproval,
    TicketComment,
    Transition,
    TransitionAction,
    TransitionHistory,
    TransitionOutcome,
    Workflow,
)

if TYPE_CHECKING:
    from ticketflow.sla.application.services import SLATimerService
    from ticketflow.workflow.application.approvals import ApprovalCoordinator

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get(self, ticket_id: str, for_update: bool = False) -> Optional[Ticket]:
        """Get a ticket by ID, optionally locking the row."""

    @abstractmethod
    async def add(self, ticket: Ticket) -> None:
        """Persist a new ticket."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> None:
        """Persist status, field and assignment changes."""


class IUserDirectory(ABC):
    """Interface for the identity collaborator."""

    @abstractmethod
    async def get_actor(self, user_id: str) -> Optional[Actor]:
        """Active (not deleted) user by ID."""

    @abstractmethod
    async def list_ids_with_role(
        self,
        role: str,
        tenant_id: Optional[str],
        limit: Optional[int] = None
    ) -> List[str]:
        """IDs of active users holding ``role`` in the tenant, in a stable order."""


class IWorkflowRepository(ABC):
    """Interface for the workflow definition store."""

    @abstractmethod
    async def get(self, workflow_id: str) -> Optional[Workflow]:
        """Workflow with its transitions."""

    @abstractmethod
    async def get_active_for_type(self, ticket_type: str) -> Optional[Workflow]:
        """
        The active default workflow of a ticket type.

        Raises:
            ConfigurationException: More than one workflow is active for the type
        """

    @abstractmethod
    async def list(
        self,
        ticket_type: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[Workflow]:
        """Workflows ordered by ticket type, default first, then name."""

    @abstractmethod
    async def add(self, workflow: Workflow) -> None:
        """Persist a workflow with its transitions."""


class ITransitionHistoryRepository(ABC):
    """Interface for the transition audit trail."""

    @abstractmethod
    async def add(self, entry: TransitionHistory) -> None:
        """Append a history row."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TransitionHistory]:
        """History of a ticket, newest first."""


class ICommentRepository(ABC):
    """Interface for ticket comments."""

    @abstractmethod
    async def add(self, comment: TicketComment) -> None:
        """Append a comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketComment]:
        """Comments of a ticket, oldest first."""


class IApprovalRepository(ABC):
    """Interface for approval data access."""

    @abstractmethod
    async def get(self, approval_id: str, for_update: bool = False) -> Optional[TicketApproval]:
        """Approval with its frozen approver set and every response."""

    @abstractmethod
    async def add(self, approval: TicketApproval) -> None:
        """Persist a new approval and its approver set."""

    @abstractmethod
    async def save(self, approval: TicketApproval) -> None:
        """Persist status, approved_by and rejection fields."""

    @abstractmethod
    async def add_response(self, response: ApprovalResponse) -> None:
        """Persist one response; (approval, user) is unique."""

    @abstractmethod
    async def list_pending_for_user(self, user_id: str) -> List[TicketApproval]:
        """Pending approvals awaiting this user's answer, newest first."""


# ========== Application Services ==========

class TransitionExecutor:
    """
    Applies status changes inside an open unit of work.

    Shared by the engine (direct transitions) and the approval coordinator
    (approval requests, rejections and final approvals).
    """

    def __init__(
        self,
        sla: Optional["SLATimerService"] = None,
        activity: Optional[IActivitySink] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Clock = utc_now,
    ):
        self._sla = sla
        self._activity = activity
        self._dispatcher = dispatcher
        self.clock = clock

    async def move(
        self,
        uow: AbstractUnitOfWork,
        ticket: Ticket,
        to_status: str,
        actor_id: Optional[str],
        now: datetime,
    ) -> str:
        """Set the ticket status and let the SLA timer follow. Returns the old status."""
        old_status = ticket.status
        ticket.move_to(to_status, now)
        await uow.tickets.save(ticket)
        if self._sla is not None:
            await self._sla.on_status_changed(uow, ticket.id, old_status, to_status, actor_id)
        return old_status

    async def apply(
        self,
        uow: AbstractUnitOfWork,
        ticket: Ticket,
        transition: Transition,
        actor_id: str,
        history_comment: Optional[str] = None,
        visible_comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Apply ``transition`` to ``ticket``: status, actions in declared
        order, history row and optional visible comment.

        Raises:
            TransitionFailedError: An action failed; the caller must not commit
        """
        now = self.clock()
        from_status = await self.move(uow, ticket, transition.to_status, actor_id, now)

        notify_targets: List[str] = []
        for index, action in enumerate(transition.actions):
            try:
                await self._run_action(uow, ticket, action, actor_id, now, notify_targets)
            except ActionExecutionError as e:
                logger.warning(
                    "Transition action failed",
                    extra={
                        "ticket_id": ticket.id,
                        "transition_id": transition.id,
                        "action_index": index,
                        "error": e.message,
                    }
                )
                raise TransitionFailedError(
                    ticket.id,
                    e.message,
                    {"transition_id": transition.id, "action_index": index, **e.details}
                ) from e

        await uow.tickets.save(ticket)

        await uow.history.add(TransitionHistory.record(
            ticket.id,
            transition.id,
            from_status,
            transition.to_status,
            actor_id,
            now,
            comment=history_comment,
            metadata=metadata,
        ))

        if visible_comment:
            await uow.comments.add(TicketComment.new(ticket.id, actor_id, visible_comment, now))

        if self._dispatcher is not None:
            dispatcher = self._dispatcher
            for target in notify_targets:
                uow.on_commit(
                    lambda target=target: dispatcher.dispatch(target, ticket.id, "transition.performed")
                )

        return from_status

    async def _run_action(
        self,
        uow: AbstractUnitOfWork,
        ticket: Ticket,
        action: TransitionAction,
        actor_id: str,
        now: datetime,
        notify_targets: List[str],
    ) -> None:
        match action:
            case SetFieldAction():
                ticket.set_field(action.field, now.isoformat() if action.uses_now else action.value)
            case AddCommentAction(text=text):
                await uow.comments.add(
                    TicketComment.new(ticket.id, actor_id, text, now, is_internal=True)
                )
            case AssignAction(user_id=user_id):
                if user_id is not None and await uow.users.get_actor(user_id) is None:
                    raise ActionExecutionError(
                        f"Assignee {user_id} does not exist",
                        {"user_id": user_id}
                    )
                ticket.assignee_id = user_id
            case NotifyAction(target=target):
                notify_targets.append(target)
            case _:
                assert_never(action)

    def emit(
        self,
        uow: AbstractUnitOfWork,
        actor_id: Optional[str],
        event_kind: str,
        ticket_id: str,
        description: str
    ) -> None:
        """Queue an activity event for after commit."""
        if self._activity is None:
            return
        activity = self._activity
        uow.on_commit(
            lambda: activity.log_activity(actor_id, event_kind, "ticket", ticket_id, description)
        )


class TransitionEngine:
    """
    Validates and executes transition requests.

    Guards run in a fixed order and the first failure wins:
    role, required fields, then the approval requirement.
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        executor: TransitionExecutor,
        approvals: "ApprovalCoordinator",
        superuser_role: Optional[str] = None,
    ):
        self._uow_factory = uow_factory
        self._executor = executor
        self._approvals = approvals
        self._superuser_role = superuser_role or settings.superuser_role

    async def request_transition(
        self,
        ticket_id: str,
        transition_id: Optional[str],
        actor: Actor,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        to_status: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Request a transition, named by ID or by target status.

        Raises:
            ResourceNotFoundException: Ticket or active workflow missing
            InvalidTransitionError: No matching edge from the current status
            ForbiddenError: Actor lacks the required role or tenant
            MissingRequiredFieldError: A required field is blank
            TransitionFailedError: A side-effect action failed (rolled back)
            ConfigurationException: Ambiguous edge or empty approver pool
        """
        async with self._uow_factory() as uow:
            ticket = await self._load_ticket(uow, ticket_id, actor, for_update=True)
            workflow = await self._active_workflow(uow, ticket)
            transition = self._resolve(workflow, ticket, transition_id, to_status)

            if not transition.role_allows(actor, self._superuser_role):
                logger.info(
                    "Transition refused: role",
                    extra={"ticket_id": ticket.id, "actor_id": actor.id, "required_role": transition.required_role}
                )
                raise ForbiddenError(
                    f"This transition requires {transition.required_role} role",
                    {"ticket_id": ticket.id, "required_role": transition.required_role}
                )

            missing = transition.first_missing_field(ticket)
            if missing is not None:
                logger.info(
                    "Transition refused: missing field",
                    extra={"ticket_id": ticket.id, "field": missing}
                )
                raise MissingRequiredFieldError(ticket.id, missing)

            from_status = ticket.status

            if transition.requires_approval:
                approval = await self._approvals.open_within(
                    uow, ticket, transition, actor, comment=comment, metadata=metadata
                )
                await uow.commit()
                return TransitionOutcome(
                    kind=OutcomeKind.PENDING_APPROVAL,
                    ticket_id=ticket.id,
                    transition_id=transition.id,
                    from_status=from_status,
                    status=ticket.status,
                    approval_id=approval.id,
                )

            await self._executor.apply(
                uow,
                ticket,
                transition,
                actor.id,
                history_comment=comment,
                visible_comment=comment,
                metadata=metadata,
            )
            self._executor.emit(
                uow, actor.id, "transition.performed", ticket.id,
                f"Transitioned to {transition.to_status}: {transition.name}"
            )
            await uow.commit()

        logger.info(
            "Transition performed",
            extra={
                "ticket_id": ticket.id,
                "transition_id": transition.id,
                "from_status": from_status,
                "to_status": transition.to_status,
                "actor_id": actor.id,
            }
        )
        return TransitionOutcome(
            kind=OutcomeKind.COMPLETED,
            ticket_id=ticket.id,
            transition_id=transition.id,
            from_status=from_status,
            status=transition.to_status,
        )

    async def get_valid_transitions(self, ticket_id: str, actor: Actor) -> List[Transition]:
        """
        Transitions out of the ticket's current status that the actor's role
        may request. Field and approval guards are evaluated at request time.
        """
        async with self._uow_factory() as uow:
            ticket = await self._load_ticket(uow, ticket_id, actor)
            workflow = await self._active_workflow(uow, ticket)
        return [
            t for t in workflow.transitions_from(ticket.status)
            if t.role_allows(actor, self._superuser_role)
        ]

    async def get_transition_history(self, ticket_id: str, actor: Actor) -> List[TransitionHistory]:
        async with self._uow_factory() as uow:
            await self._load_ticket(uow, ticket_id, actor)
            return await uow.history.list_for_ticket(ticket_id)

    async def list_workflows(
        self,
        ticket_type: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[Workflow]:
        async with self._uow_factory() as uow:
            return await uow.workflows.list(ticket_type=ticket_type, is_active=is_active)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        async with self._uow_factory() as uow:
            workflow = await uow.workflows.get(workflow_id)
        if workflow is None:
            raise ResourceNotFoundException("Workflow", workflow_id)
        return workflow

    # ---------- helpers ----------

    async def _load_ticket(
        self,
        uow: AbstractUnitOfWork,
        ticket_id: str,
        actor: Actor,
        for_update: bool = False
    ) -> Ticket:
        ticket = await uow.tickets.get(ticket_id, for_update=for_update)
        if ticket is None or ticket.is_deleted:
            raise ResourceNotFoundException("Ticket", ticket_id)
        if not actor.can_access(ticket.tenant_id, self._superuser_role):
            raise ForbiddenError(
                "Ticket belongs to another tenant",
                {"ticket_id": ticket_id}
            )
        return ticket

    async def _active_workflow(self, uow: AbstractUnitOfWork, ticket: Ticket) -> Workflow:
        workflow = await uow.workflows.get_active_for_type(ticket.type)
        if workflow is None:
            raise ResourceNotFoundException("Active workflow for ticket type", ticket.type)
        return workflow

    @staticmethod
    def _resolve(
        workflow: Workflow,
        ticket: Ticket,
        transition_id: Optional[str],
        to_status: Optional[str],
    ) -> Transition:
        if transition_id:
            transition = workflow.get_transition(transition_id)
        elif to_status:
            transition = workflow.find_transition(ticket.status, to_status)
        else:
            raise InvalidTransitionError(
                ticket.id, ticket.status, "Transition ID or target status is required"
            )

        if transition is None or transition.from_status != ticket.status:
            raise InvalidTransitionError(ticket.id, ticket.status)
        return transition
