"""
Workflow Infrastructure Repositories
====================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. ``for_update`` reads take a row lock for the
rest of the transaction.
"""

from typing import Dict, List, Optional

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import ApprovalDecision, ApprovalStatus
from ticketflow.core import ConfigurationException, RepositoryException
from ticketflow.workflow.application.services import (
    IApprovalRepository,
    ICommentRepository,
    ITicketRepository,
    ITransitionHistoryRepository,
    IUserDirectory,
    IWorkflowRepository,
)
from ticketflow.workflow.domain import (
    Actor,
    ApprovalResponse,
    Ticket,
    TicketApproval,
    TicketComment,
    Transition,
    TransitionHistory,
    Workflow,
    action_to_dict,
    parse_actions,
)
from ticketflow.workflow.infrastructure.models import (
    ApprovalApproverModel,
    ApprovalResponseModel,
    TicketApprovalModel,
    TicketCommentModel,
    TicketModel,
    TicketTransitionModel,
    UserModel,
    WorkflowModel,
    WorkflowTransitionModel,
)


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation of ticket repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            tenant_id=model.tenant_id,
            type=model.type,
            status=model.status,
            priority=model.priority,
            title=model.title,
            description=model.description,
            assignee_id=model.assignee_id,
            reporter_id=model.reporter_id,
            fields=dict(model.fields or {}),
            is_deleted=model.is_deleted,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: TicketModel, ticket: Ticket) -> None:
        model.tenant_id = ticket.tenant_id
        model.type = ticket.type
        model.status = ticket.status
        model.priority = ticket.priority
        model.title = ticket.title
        model.description = ticket.description
        model.assignee_id = ticket.assignee_id
        model.reporter_id = ticket.reporter_id
        model.fields = dict(ticket.fields)
        model.is_deleted = ticket.is_deleted
        model.created_at = ticket.created_at
        model.updated_at = ticket.updated_at

    async def _get_model(self, ticket_id: str, for_update: bool = False) -> Optional[TicketModel]:
        stmt = select(TicketModel).where(TicketModel.id == ticket_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, ticket_id: str, for_update: bool = False) -> Optional[Ticket]:
        model = await self._get_model(ticket_id, for_update)
        return self._to_domain(model) if model else None

    async def add(self, ticket: Ticket) -> None:
        model = TicketModel(id=ticket.id)
        self._apply(model, ticket)
        self._session.add(model)
        await self._session.flush()

    async def save(self, ticket: Ticket) -> None:
        model = await self._get_model(ticket.id)
        if model is None:
            raise RepositoryException(f"Ticket {ticket.id} not found")
        self._apply(model, ticket)
        await self._session.flush()


class SQLAlchemyUserDirectory(IUserDirectory):
    """Users table as the identity collaborator."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_actor(self, user_id: str) -> Optional[Actor]:
        stmt = select(UserModel).where(and_(
            UserModel.id == user_id,
            UserModel.is_deleted.is_(False),
        ))
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Actor(id=model.id, role=model.role, tenant_id=model.tenant_id)

    async def list_ids_with_role(
        self,
        role: str,
        tenant_id: Optional[str],
        limit: Optional[int] = None
    ) -> List[str]:
        conditions = [UserModel.role == role, UserModel.is_deleted.is_(False)]
        if tenant_id is not None:
            conditions.append(UserModel.tenant_id == tenant_id)

        stmt = (
            select(UserModel.id)
            .where(and_(*conditions))
            .order_by(UserModel.created_at.asc(), UserModel.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyWorkflowRepository(IWorkflowRepository):
    """SQLAlchemy implementation of the workflow definition store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _transition_to_domain(model: WorkflowTransitionModel) -> Transition:
        return Transition(
            id=model.id,
            workflow_id=model.workflow_id,
            name=model.name,
            from_status=model.from_status,
            to_status=model.to_status,
            required_role=model.required_role,
            required_fields=list(model.required_fields or []),
            requires_approval=model.requires_approval,
            approval_role=model.approval_role,
            actions=parse_actions(model.actions),
            button_text=model.button_text,
        )

    async def _transitions_by_workflow(self, workflow_ids: List[str]) -> Dict[str, List[Transition]]:
        grouped: Dict[str, List[Transition]] = {wid: [] for wid in workflow_ids}
        if not workflow_ids:
            return grouped

        stmt = (
            select(WorkflowTransitionModel)
            .where(WorkflowTransitionModel.workflow_id.in_(workflow_ids))
            .order_by(WorkflowTransitionModel.from_status, WorkflowTransitionModel.to_status)
        )
        result = await self._session.execute(stmt)
        for model in result.scalars().all():
            grouped[model.workflow_id].append(self._transition_to_domain(model))
        return grouped

    async def _hydrate(self, models: List[WorkflowModel]) -> List[Workflow]:
        transitions = await self._transitions_by_workflow([m.id for m in models])
        return [
            Workflow(
                id=m.id,
                name=m.name,
                ticket_type=m.ticket_type,
                description=m.description,
                version=m.version,
                is_default=m.is_default,
                is_active=m.is_active,
                created_by=m.created_by,
                created_at=m.created_at,
                transitions=transitions[m.id],
            )
            for m in models
        ]

    async def get(self, workflow_id: str) -> Optional[Workflow]:
        model = await self._session.get(WorkflowModel, workflow_id)
        if model is None:
            return None
        return (await self._hydrate([model]))[0]

    async def get_active_for_type(self, ticket_type: str) -> Optional[Workflow]:
        stmt = select(WorkflowModel).where(and_(
            WorkflowModel.ticket_type == ticket_type,
            WorkflowModel.is_active.is_(True),
            WorkflowModel.is_default.is_(True),
        ))
        result = await self._session.execute(stmt)
        models = list(result.scalars().all())
        if len(models) > 1:
            raise ConfigurationException(
                f"{len(models)} workflows are active for ticket type '{ticket_type}'",
                {"ticket_type": ticket_type, "workflow_ids": [m.id for m in models]}
            )
        if not models:
            return None
        return (await self._hydrate(models))[0]

    async def list(
        self,
        ticket_type: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[Workflow]:
        stmt = select(WorkflowModel)
        if ticket_type:
            stmt = stmt.where(WorkflowModel.ticket_type == ticket_type)
        if is_active is not None:
            stmt = stmt.where(WorkflowModel.is_active.is_(is_active))
        stmt = stmt.order_by(
            WorkflowModel.ticket_type, WorkflowModel.is_default.desc(), WorkflowModel.name
        )
        result = await self._session.execute(stmt)
        return await self._hydrate(list(result.scalars().all()))

    async def add(self, workflow: Workflow) -> None:
        self._session.add(WorkflowModel(
            id=workflow.id,
            name=workflow.name,
            description=workflow.description,
            ticket_type=workflow.ticket_type,
            version=workflow.version,
            is_default=workflow.is_default,
            is_active=workflow.is_active,
            created_by=workflow.created_by,
            created_at=workflow.created_at,
        ))
        for t in workflow.transitions:
            self._session.add(WorkflowTransitionModel(
                id=t.id,
                workflow_id=workflow.id,
                name=t.name,
                from_status=t.from_status,
                to_status=t.to_status,
                required_role=t.required_role,
                required_fields=list(t.required_fields),
                requires_approval=t.requires_approval,
                approval_role=t.approval_role,
                actions=[action_to_dict(a) for a in t.actions],
                button_text=t.button_text,
            ))
        await self._session.flush()


class SQLAlchemyTransitionHistoryRepository(ITransitionHistoryRepository):
    """SQLAlchemy implementation of the transition audit trail."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: TransitionHistory) -> None:
        self._session.add(TicketTransitionModel(
            id=entry.id,
            ticket_id=entry.ticket_id,
            transition_id=entry.transition_id,
            from_status=entry.from_status,
            to_status=entry.to_status,
            performed_by=entry.performed_by,
            comment=entry.comment,
            meta=dict(entry.metadata),
            performed_at=entry.performed_at,
        ))
        await self._session.flush()

    async def list_for_ticket(self, ticket_id: str) -> List[TransitionHistory]:
        stmt = (
            select(TicketTransitionModel)
            .where(TicketTransitionModel.ticket_id == ticket_id)
            .order_by(TicketTransitionModel.performed_at.desc())
        )
        result = await self._session.execute(stmt)
        return [
            TransitionHistory(
                id=m.id,
                ticket_id=m.ticket_id,
                transition_id=m.transition_id,
                from_status=m.from_status,
                to_status=m.to_status,
                performed_by=m.performed_by,
                comment=m.comment,
                metadata=dict(m.meta or {}),
                performed_at=m.performed_at,
            )
            for m in result.scalars().all()
        ]


class SQLAlchemyCommentRepository(ICommentRepository):
    """SQLAlchemy implementation of ticket comments."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, comment: TicketComment) -> None:
        self._session.add(TicketCommentModel(
            id=comment.id,
            ticket_id=comment.ticket_id,
            user_id=comment.user_id,
            comment_text=comment.comment_text,
            is_internal=comment.is_internal,
            created_at=comment.created_at,
        ))
        await self._session.flush()

    async def list_for_ticket(self, ticket_id: str) -> List[TicketComment]:
        stmt = (
            select(TicketCommentModel)
            .where(TicketCommentModel.ticket_id == ticket_id)
            .order_by(TicketCommentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [
            TicketComment(
                id=m.id,
                ticket_id=m.ticket_id,
                user_id=m.user_id,
                comment_text=m.comment_text,
                is_internal=m.is_internal,
                created_at=m.created_at,
            )
            for m in result.scalars().all()
        ]


class SQLAlchemyApprovalRepository(IApprovalRepository):
    """SQLAlchemy implementation of approval repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _hydrate(self, model: TicketApprovalModel) -> TicketApproval:
        approvers = await self._session.execute(
            select(ApprovalApproverModel.user_id)
            .where(ApprovalApproverModel.approval_id == model.id)
            .order_by(ApprovalApproverModel.position)
        )
        responses = await self._session.execute(
            select(ApprovalResponseModel)
            .where(ApprovalResponseModel.approval_id == model.id)
            .order_by(ApprovalResponseModel.responded_at.asc())
        )
        return TicketApproval(
            id=model.id,
            ticket_id=model.ticket_id,
            transition_id=model.transition_id,
            requested_by=model.requested_by,
            required_approvers=tuple(approvers.scalars().all()),
            previous_status=model.previous_status,
            requested_at=model.requested_at,
            status=ApprovalStatus(model.status),
            approved_by=list(model.approved_by or []),
            rejected_by=model.rejected_by,
            rejection_reason=model.rejection_reason,
            completed_at=model.completed_at,
            responses=[
                ApprovalResponse(
                    id=r.id,
                    approval_id=r.approval_id,
                    user_id=r.user_id,
                    response=ApprovalDecision(r.response),
                    response_notes=r.response_notes,
                    responded_at=r.responded_at,
                )
                for r in responses.scalars().all()
            ],
        )

    async def _get_model(self, approval_id: str, for_update: bool = False) -> Optional[TicketApprovalModel]:
        stmt = select(TicketApprovalModel).where(TicketApprovalModel.id == approval_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, approval_id: str, for_update: bool = False) -> Optional[TicketApproval]:
        model = await self._get_model(approval_id, for_update)
        return await self._hydrate(model) if model else None

    async def add(self, approval: TicketApproval) -> None:
        self._session.add(TicketApprovalModel(
            id=approval.id,
            ticket_id=approval.ticket_id,
            transition_id=approval.transition_id,
            requested_by=approval.requested_by,
            requested_at=approval.requested_at,
            previous_status=approval.previous_status,
            status=approval.status.value,
            approved_by=list(approval.approved_by),
            rejected_by=approval.rejected_by,
            rejection_reason=approval.rejection_reason,
            completed_at=approval.completed_at,
        ))
        for position, user_id in enumerate(approval.required_approvers):
            self._session.add(ApprovalApproverModel(
                approval_id=approval.id,
                user_id=user_id,
                position=position,
            ))
        await self._session.flush()

    async def save(self, approval: TicketApproval) -> None:
        model = await self._get_model(approval.id)
        if model is None:
            raise RepositoryException(f"Approval {approval.id} not found")
        model.status = approval.status.value
        model.approved_by = list(approval.approved_by)
        model.rejected_by = approval.rejected_by
        model.rejection_reason = approval.rejection_reason
        model.completed_at = approval.completed_at
        await self._session.flush()

    async def add_response(self, response: ApprovalResponse) -> None:
        self._session.add(ApprovalResponseModel(
            id=response.id,
            approval_id=response.approval_id,
            user_id=response.user_id,
            response=response.response.value,
            response_notes=response.response_notes,
            responded_at=response.responded_at,
        ))
        await self._session.flush()

    async def list_pending_for_user(self, user_id: str) -> List[TicketApproval]:
        already_answered = exists().where(and_(
            ApprovalResponseModel.approval_id == TicketApprovalModel.id,
            ApprovalResponseModel.user_id == user_id,
        ))
        stmt = (
            select(TicketApprovalModel)
            .join(
                ApprovalApproverModel,
                ApprovalApproverModel.approval_id == TicketApprovalModel.id,
            )
            .where(and_(
                TicketApprovalModel.status == ApprovalStatus.PENDING.value,
                ApprovalApproverModel.user_id == user_id,
                ~already_answered,
            ))
            .order_by(TicketApprovalModel.requested_at.desc())
        )
        result = await self._session.execute(stmt)
        return [await self._hydrate(m) for m in result.scalars().all()]
