"""
Transition Actions
==================

Side effects attached to a workflow transition, run in declared order when
the transition is applied.

Each action kind is its own immutable type carrying a typed payload:

    set_field   -> SetFieldAction(field, value)      value "now" means the apply time
    add_comment -> AddCommentAction(text)            internal comment
    assign      -> AssignAction(user_id)
    notify      -> NotifyAction(target)              best-effort, delivered after commit

Workflow configuration stores actions as JSON objects keyed by ``action``;
``parse_action`` and ``action_to_dict`` convert between the two forms.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ticketflow.core import ConfigurationException

NOW = "now"


@dataclass(frozen=True)
class SetFieldAction:
    """Set a ticket field to a literal, or to the apply time when value is ``now``."""
    field: str
    value: Any

    @property
    def uses_now(self) -> bool:
        return isinstance(self.value, str) and self.value.lower() == NOW


@dataclass(frozen=True)
class AddCommentAction:
    """Append an internal comment authored by the acting user."""
    text: str


@dataclass(frozen=True)
class AssignAction:
    """Reassign the ticket."""
    user_id: Optional[str]


@dataclass(frozen=True)
class NotifyAction:
    """Notify a target about the ticket."""
    target: str


TransitionAction = Union[SetFieldAction, AddCommentAction, AssignAction, NotifyAction]


def parse_action(raw: Dict[str, Any]) -> TransitionAction:
    """
    Build a typed action from its stored JSON form.

    Raises:
        ConfigurationException: Unknown action kind or missing payload
    """
    if not isinstance(raw, dict):
        raise ConfigurationException("Transition action must be an object", {"action": raw})

    kind = raw.get("action")
    try:
        match kind:
            case "set_field":
                return SetFieldAction(field=raw["field"], value=raw.get("value"))
            case "add_comment":
                return AddCommentAction(text=raw["text"])
            case "assign":
                return AssignAction(user_id=raw.get("user_id"))
            case "notify":
                return NotifyAction(target=raw["target"])
    except KeyError as e:
        raise ConfigurationException(
            f"Transition action '{kind}' is missing '{e.args[0]}'",
            {"action": raw}
        ) from e

    raise ConfigurationException(f"Unknown transition action: {kind}", {"action": raw})


def parse_actions(raw_actions: Optional[List[Dict[str, Any]]]) -> List[TransitionAction]:
    return [parse_action(raw) for raw in raw_actions or []]


def action_to_dict(action: TransitionAction) -> Dict[str, Any]:
    """Stored JSON form of an action."""
    match action:
        case SetFieldAction(field=field, value=value):
            return {"action": "set_field", "field": field, "value": value}
        case AddCommentAction(text=text):
            return {"action": "add_comment", "text": text}
        case AssignAction(user_id=user_id):
            return {"action": "assign", "user_id": user_id}
        case NotifyAction(target=target):
            return {"action": "notify", "target": target}
    raise TypeError(f"Not a transition action: {action!r}")
