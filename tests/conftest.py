"""
Shared fixtures: an in-memory SQLite database behind the real unit of
work, a controllable clock, recording collaborators and a seeded tenant.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

import pytest
from starlette.datastructures import State

from ticketflow.infrastructure.database import build_engine, build_session_maker, create_tables
from ticketflow.infrastructure.database.unit_of_work import sqlalchemy_uow_factory
from ticketflow.main import wire_services
from ticketflow.shared.application import IActivitySink, INotifier, NotificationDispatcher
from ticketflow.sla.domain import SLAConfig
from ticketflow.sla.infrastructure.external import SLAConfigManager
from ticketflow.workflow.domain import (
    AddCommentAction,
    AssignAction,
    NotifyAction,
    SetFieldAction,
    Ticket,
    Transition,
    Workflow,
)
from ticketflow.workflow.infrastructure.models import UserModel

START = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"
WORKFLOW_ID = "wf-incident"


class FakeClock:
    """Frozen clock that tests move forward explicitly."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(INotifier):
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, str]] = []

    async def notify(self, target: str, ticket_id: str, event: str) -> bool:
        self.sent.append((target, ticket_id, event))
        return True


class RecordingActivity(IActivitySink):
    def __init__(self) -> None:
        self.events: List[Tuple[Optional[str], str, str]] = []

    def log_activity(self, actor_id, event_kind, resource_type, resource_id, description) -> None:
        self.events.append((actor_id, event_kind, resource_id))

    def kinds(self) -> List[str]:
        return [kind for _, kind, _ in self.events]


@dataclass
class Services:
    state: State
    session_maker: Any
    clock: FakeClock
    notifier: RecordingNotifier
    activity: RecordingActivity
    dispatcher: NotificationDispatcher

    @property
    def uow_factory(self):
        return self.state.uow_factory

    @property
    def engine(self):
        return self.state.transition_engine

    @property
    def approvals(self):
        return self.state.approval_coordinator

    @property
    def sla(self):
        return self.state.sla_timers

    @property
    def sweeper(self):
        return self.state.sla_sweeper


def incident_workflow() -> Workflow:
    """open -> in_progress -> resolved, plus guarded and failing edges."""
    def edge(tid, from_status, to_status, **kwargs) -> Transition:
        return Transition(
            id=tid, workflow_id=WORKFLOW_ID, name=tid,
            from_status=from_status, to_status=to_status, **kwargs
        )

    return Workflow(
        id=WORKFLOW_ID,
        name="Incident",
        ticket_type="incident",
        created_at=START,
        transitions=[
            edge("t-start", "open", "in_progress", required_role="agent",
                 actions=[SetFieldAction("started_at", "now")]),
            edge("t-resolve", "in_progress", "resolved", required_role="agent",
                 required_fields=["resolution"],
                 actions=[
                     SetFieldAction("resolved_at", "now"),
                     AddCommentAction("Resolved by workflow"),
                     NotifyAction("reporter"),
                 ]),
            edge("t-escalate", "in_progress", "escalated",
                 requires_approval=True, approval_role="manager"),
            edge("t-orphan", "in_progress", "on_hold",
                 requires_approval=True, approval_role="auditor"),
            edge("t-corrupt", "in_progress", "blocked",
                 actions=[SetFieldAction("root_cause", "unknown"), SetFieldAction("status", "closed")]),
            edge("t-ghost", "in_progress", "triaged",
                 actions=[AssignAction("no-such-user")]),
            edge("t-handoff", "in_progress", "handed_off",
                 actions=[AssignAction("mgr-1")]),
        ],
    )


USERS = [
    ("agent-1", "agent", TENANT),
    ("reporter-1", "reporter", TENANT),
    ("mgr-1", "manager", TENANT),
    ("mgr-2", "manager", TENANT),
    ("mgr-x", "manager", OTHER_TENANT),
    ("root", "super_admin", TENANT),
    ("agent-x", "agent", OTHER_TENANT),
]


@pytest.fixture
async def db_engine():
    engine = build_engine("sqlite+aiosqlite://")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sla_definitions() -> SLAConfigManager:
    # high = 4h, critical = 1h
    return SLAConfigManager(SLAConfig(sla_targets={"critical": 60, "high": 240}))


@pytest.fixture
async def services(db_engine, clock, sla_definitions) -> Services:
    notifier = RecordingNotifier()
    activity = RecordingActivity()
    dispatcher = NotificationDispatcher(notifier)
    state = State()
    session_maker = build_session_maker(db_engine)

    wire_services(
        state,
        sqlalchemy_uow_factory(session_maker),
        sla_definitions,
        dispatcher=dispatcher,
        activity=activity,
        clock=clock,
    )
    svc = Services(state, session_maker, clock, notifier, activity, dispatcher)
    await seed(svc)
    return svc


async def seed(svc: Services) -> None:
    async with svc.session_maker() as session:
        for offset, (user_id, role, tenant) in enumerate(USERS):
            session.add(UserModel(
                id=user_id,
                tenant_id=tenant,
                name=user_id,
                role=role,
                created_at=START + timedelta(seconds=offset),
            ))
        await session.commit()

    async with svc.uow_factory() as uow:
        await uow.workflows.add(incident_workflow())
        await uow.commit()


async def create_ticket(
    svc: Services,
    ticket_id: str = "T-1",
    status: str = "open",
    priority: str = "high",
    tenant_id: str = TENANT,
    **fields,
) -> Ticket:
    ticket = Ticket(
        id=ticket_id,
        tenant_id=tenant_id,
        type="incident",
        status=status,
        priority=priority,
        title="VPN down",
        reporter_id="reporter-1",
        fields=fields,
        created_at=svc.clock(),
        updated_at=svc.clock(),
    )
    async with svc.uow_factory() as uow:
        await uow.tickets.add(ticket)
        await uow.commit()
    return ticket


async def load_ticket(svc: Services, ticket_id: str = "T-1") -> Ticket:
    async with svc.uow_factory() as uow:
        return await uow.tickets.get(ticket_id)


async def load_comments(svc: Services, ticket_id: str = "T-1"):
    async with svc.uow_factory() as uow:
        return await uow.comments.list_for_ticket(ticket_id)


async def load_history(svc: Services, ticket_id: str = "T-1"):
    async with svc.uow_factory() as uow:
        return await uow.history.list_for_ticket(ticket_id)
