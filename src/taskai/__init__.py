"""
TASKAI - Structured Task Backlogs
=================================

Task backlogs with explicit dependencies, lifecycle state and completion
criteria, answering "what can I do next" for humans and autonomous agents.

Usage:
    from taskai import BacklogManager, ready_tasks, mark_done, loads, dumps

    backlog = loads(open("backlog.yaml").read())
    for task in ready_tasks(backlog):
        print(task.id, task.title)

    mark_done(backlog, "API-1")
    open("backlog.yaml", "w").write(dumps(backlog))

    # Or let the manager handle the file
    manager = BacklogManager()
    manager.mark_done("backlog.yaml", "API-2")
"""

from .schema import (
    Backlog,
    Epic,
    Task,
    TaskState,
    dumps,
    json_schema,
    loads,
    parse,
    serialize,
)

from .engine import (
    Progress,
    blocking_dependencies,
    find_cycle,
    is_ready,
    mark_done,
    progress,
    ready_tasks,
    validate_graph,
)

from .errors import (
    BacklogFileError,
    GenerationError,
    NotFoundError,
    StateError,
    StructuralError,
    TaskaiError,
)

from .config import Settings
from .generator import BacklogGenerator, extract_yaml, quote_task_keys
from .manager import BacklogManager

__version__ = "0.1.0"
__all__ = [
    "Backlog",
    "Epic",
    "Task",
    "TaskState",
    "parse",
    "serialize",
    "loads",
    "dumps",
    "json_schema",
    "Progress",
    "blocking_dependencies",
    "find_cycle",
    "is_ready",
    "mark_done",
    "progress",
    "ready_tasks",
    "validate_graph",
    "TaskaiError",
    "StructuralError",
    "NotFoundError",
    "StateError",
    "GenerationError",
    "BacklogFileError",
    "Settings",
    "BacklogGenerator",
    "extract_yaml",
    "quote_task_keys",
    "BacklogManager",
]
