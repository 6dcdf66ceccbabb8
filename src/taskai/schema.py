"""
TASKAI - Backlog Schema Definition
==================================
Canonical shape of a backlog document: tasks with dependencies, lifecycle
state and completion criteria, optionally grouped into epics.

Documents are decoded from YAML or JSON, validated into a Backlog, and
serialized back in a stable field order.
"""

import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Sequence

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StringConstraints,
    ValidationError,
    field_validator,
)

from .errors import StructuralError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Top-level collections dropped from output when empty
OPTIONAL_COLLECTIONS = ("success_criteria", "environment", "epics")

DOCUMENT_FORMATS = ("yaml", "json")


class TaskState(str, Enum):
    """Task lifecycle states"""
    TODO = "Todo"   # Initial
    DONE = "Done"   # Terminal


class Task(BaseModel):
    """Single unit of work"""
    model_config = ConfigDict(extra="allow")

    id: NonEmptyStr
    title: NonEmptyStr
    description: Optional[str] = None

    # Task IDs that must be Done first; duplicates are redundant, not errors
    depends: List[NonEmptyStr] = Field(default_factory=list)
    state: TaskState = TaskState.TODO

    # Expected output artifacts, e.g. "src/parser.py"
    deliverable: List[NonEmptyStr] = Field(min_length=1)
    done_when: List[NonEmptyStr] = Field(min_length=1)

    @field_validator("depends", mode="before")
    @classmethod
    def _depends_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("deliverable", mode="before")
    @classmethod
    def _normalize_deliverable(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @property
    def is_done(self) -> bool:
        return self.state == TaskState.DONE


class Epic(BaseModel):
    """Named group of tasks sharing the backlog's id namespace"""
    model_config = ConfigDict(extra="allow")

    id: NonEmptyStr
    title: NonEmptyStr
    tasks: List[Task] = Field(default_factory=list)


class Backlog(BaseModel):
    """Complete backlog for one project"""
    model_config = ConfigDict(extra="allow")

    project: NonEmptyStr

    # Opaque metadata, carried through untouched
    rust_version: Optional[Any] = None
    success_criteria: List[str] = Field(default_factory=list)
    environment: Dict[str, Any] = Field(default_factory=dict)

    tasks: List[Task] = Field(default_factory=list)
    epics: List[Epic] = Field(default_factory=list)

    # Ordered task sequence plus id -> position lookup
    _sequence: List[Task] = PrivateAttr(default_factory=list)
    _positions: Dict[str, int] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self.reindex()

    def reindex(self) -> None:
        """Rebuild the task sequence and id lookup after structural edits"""
        sequence = list(self.tasks)
        for epic in self.epics:
            sequence.extend(epic.tasks)
        self._sequence = sequence
        self._positions = {}
        for position, task in enumerate(sequence):
            self._positions.setdefault(task.id, position)

    def all_tasks(self) -> List[Task]:
        """Standalone tasks first, then epic tasks, in declaration order"""
        return list(self._sequence)

    def task_ids(self) -> List[str]:
        return [task.id for task in self._sequence]

    def get_task(self, task_id: str) -> Optional[Task]:
        position = self._positions.get(task_id)
        if position is None:
            return None
        return self._sequence[position]

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._positions


# ============================================================
# DOCUMENT CONVERSION
# ============================================================

def parse(document: Any) -> Backlog:
    """Validate a decoded document into a Backlog.

    Raises StructuralError naming the offending task and rule; a partially
    valid backlog is never returned.
    """
    from .engine import validate_graph

    if not isinstance(document, dict):
        raise StructuralError(
            "document must be a mapping with 'project' and 'tasks'",
            rule="malformed-document"
        )

    try:
        backlog = Backlog.model_validate(document)
    except ValidationError as e:
        raise _structural_error(e, document) from e

    validate_graph(backlog)
    return backlog


def serialize(backlog: Backlog, mode: str = "python") -> Dict[str, Any]:
    """Emit the document form of a backlog, deliverables always as lists.

    ``mode="python"`` keeps native scalars found in metadata (dates, for
    instance) so a YAML round trip gives them back unchanged; ``mode="json"``
    reduces everything to JSON types. Unset optional fields are left out,
    while metadata keys are written even when their value is null.
    """
    document = backlog.model_dump(mode=mode)
    if document.get("rust_version") is None:
        document.pop("rust_version", None)
    for task in _task_documents(document):
        if task.get("description") is None:
            task.pop("description", None)
        task["state"] = TaskState(task["state"]).value
    for key in OPTIONAL_COLLECTIONS:
        if key in document and not document[key]:
            del document[key]
    return document


def _task_documents(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    tasks = list(document.get("tasks") or [])
    for epic in document.get("epics") or []:
        tasks.extend(epic.get("tasks") or [])
    return tasks


def loads(text: str, fmt: str = "yaml") -> Backlog:
    """Decode YAML/JSON text and validate it"""
    if fmt not in DOCUMENT_FORMATS:
        raise ValueError(f"Unsupported document format: {fmt}")
    try:
        if fmt == "json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise StructuralError(
            f"cannot decode {fmt} document: {e}",
            rule="malformed-document"
        ) from e
    return parse(document)


def dumps(backlog: Backlog, fmt: str = "yaml") -> str:
    if fmt not in DOCUMENT_FORMATS:
        raise ValueError(f"Unsupported document format: {fmt}")
    document = serialize(backlog, mode="json" if fmt == "json" else "python")
    if fmt == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return yaml.safe_dump(
        document,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False
    )


def json_schema() -> Dict[str, Any]:
    """JSON Schema describing a backlog document"""
    return Backlog.model_json_schema()


# ============================================================
# VALIDATION ERROR TRANSLATION
# ============================================================

MISSING_ERROR_TYPES = {"missing", "too_short", "string_too_short"}


def _structural_error(exc: ValidationError, document: Dict[str, Any]) -> StructuralError:
    """Turn the first pydantic error into a StructuralError"""
    error = exc.errors()[0]
    loc = tuple(error["loc"])
    rule = "missing-field" if error["type"] in MISSING_ERROR_TYPES else "invalid-field"

    task, field_loc = _locate_task(document, loc)
    task_id = None
    if task is not None and isinstance(task.get("id"), str) and task["id"].strip():
        task_id = task["id"].strip()

    where = _format_loc(field_loc if task_id else loc)
    return StructuralError(f"{where}: {error['msg']}", task_id=task_id, rule=rule)


def _locate_task(document: Any, loc: Sequence[Any]):
    """Find the innermost task mapping along an error location"""
    node = document
    task = None
    field_loc: Sequence[Any] = loc
    for i, part in enumerate(loc):
        try:
            node = node[part]
        except (KeyError, IndexError, TypeError):
            break
        if i > 0 and loc[i - 1] == "tasks" and isinstance(part, int) and isinstance(node, dict):
            task = node
            field_loc = loc[i + 1:]
    return task, field_loc


def _format_loc(loc: Sequence[Any]) -> str:
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "document"
