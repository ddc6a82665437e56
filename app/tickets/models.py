from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from app.core.errors import ValidationError

from .state import TicketStatus

TITLE_MAX_LENGTH = 200


class TicketType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    IMPROVEMENT = "improvement"
    SUPPORT = "support"
    REQUIREMENT = "requirement"


class TicketCategory(str, Enum):
    TECHNICAL = "technical"
    BUSINESS = "business"
    INFRASTRUCTURE = "infrastructure"
    SECURITY = "security"
    PERFORMANCE = "performance"
    UI_UX = "ui/ux"
    DATABASE = "database"
    API = "api"


class Department(str, Enum):
    IT = "IT"
    HR = "HR"
    FINANCE = "Finance"
    MARKETING = "Marketing"
    SALES = "Sales"
    OPERATIONS = "Operations"
    ENGINEERING = "Engineering"
    DESIGN = "Design"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    URGENT = "URGENT"


def _parse_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name} {value!r}; expected one of: {allowed}") from None


def parse_priority(value: Any) -> TicketPriority:
    if isinstance(value, str):
        value = value.strip().upper()
    return _parse_enum(TicketPriority, value, "priority")


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field_name} {value!r}; expected an ISO 8601 date")


@dataclass(slots=True)
class TicketDraft:
    """Unvalidated ticket proposal as received from a caller."""

    title: str | None
    type: str | None
    category: str | None
    project_id: str | None
    team_id: str | None
    due_date: date | str | None
    description: str = ""
    department: str | None = None
    priority: str | None = None
    submit: bool = True

    def validated(self) -> "ValidTicketDraft":
        """Return the normalized draft or raise :class:`ValidationError`.

        Every missing required field is reported in one error.
        """

        missing = [
            name
            for name in ("title", "type", "category", "project_id", "team_id", "due_date")
            if _is_blank(getattr(self, name))
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        title = str(self.title).strip()
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"title must be at most {TITLE_MAX_LENGTH} characters")

        return ValidTicketDraft(
            title=title,
            description=(self.description or "").strip(),
            type=_parse_enum(TicketType, self.type, "type"),
            category=_parse_enum(TicketCategory, self.category, "category"),
            department=None if _is_blank(self.department) else _parse_enum(Department, self.department, "department"),
            priority=TicketPriority.MEDIUM if _is_blank(self.priority) else parse_priority(self.priority),
            project_id=str(self.project_id).strip(),
            team_id=str(self.team_id).strip(),
            due_date=parse_date(self.due_date, "due_date"),
            submit=self.submit,
        )


@dataclass(frozen=True, slots=True)
class ValidTicketDraft:
    title: str
    description: str
    type: TicketType
    category: TicketCategory
    department: Department | None
    priority: TicketPriority
    project_id: str
    team_id: str
    due_date: date
    submit: bool


@dataclass(slots=True)
class TicketChanges:
    """Content edits to a ticket awaiting a decision; ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    type: str | None = None
    category: str | None = None
    department: str | None = None
    priority: str | None = None
    due_date: date | str | None = None
    project_id: str | None = None

    def validated(self) -> dict[str, Any]:
        """Return the changed columns with their stored values."""

        values: dict[str, Any] = {}
        if self.title is not None:
            title = self.title.strip()
            if not title:
                raise ValidationError("title must not be empty")
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationError(f"title must be at most {TITLE_MAX_LENGTH} characters")
            values["title"] = title
        if self.description is not None:
            values["description"] = self.description.strip()
        if self.type is not None:
            values["type"] = _parse_enum(TicketType, self.type, "type").value
        if self.category is not None:
            values["category"] = _parse_enum(TicketCategory, self.category, "category").value
        if self.department is not None:
            values["department"] = _parse_enum(Department, self.department, "department").value
        if self.priority is not None:
            values["priority"] = parse_priority(self.priority).value
        if self.due_date is not None:
            values["due_date"] = parse_date(self.due_date, "due_date")
        if self.project_id is not None:
            if _is_blank(self.project_id):
                raise ValidationError("project_id must not be empty")
            values["project_id"] = self.project_id.strip()
        if not values:
            raise ValidationError("No changes supplied")
        return values


@dataclass(slots=True)
class DecisionMetadata:
    """Optional fields accompanying an approve or reject decision."""

    rejection_reason: str | None = None
    priority: str | None = None
    expected_closure: date | str | None = None


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a ticket and its approval state."""

    id: str
    title: str
    description: str
    type: TicketType
    category: TicketCategory
    department: Department | None
    priority: TicketPriority
    due_date: date
    expected_closure: date | None
    project_id: str
    team_id: str
    created_by: str
    status: TicketStatus
    decided_by: str | None
    decided_at: datetime | None
    rejection_reason: str | None
    version: int
    updated_by: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class Comment:
    id: str
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool
    created_at: datetime


@dataclass(slots=True)
class TicketAuditEntry:
    """History entry describing state or content changes for a ticket."""

    id: str
    ticket_id: str
    action: str
    actor: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    created_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
