"""
TASKAI - Error Taxonomy
=======================
Every failure raised by the backlog core carries the offending task id
(when there is one) and the rule that was violated.
"""

from typing import Optional


class TaskaiError(Exception):
    """Base class for all taskai failures"""

    rule: str = "error"

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        rule: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.task_id = task_id
        if rule is not None:
            self.rule = rule

    def __str__(self) -> str:
        if self.task_id:
            return f"[{self.rule}] task {self.task_id}: {self.message}"
        return f"[{self.rule}] {self.message}"


class StructuralError(TaskaiError):
    """Load-time failure: the document does not describe a valid backlog"""

    rule = "structural"


class NotFoundError(TaskaiError):
    """Operation referenced a task id absent from the backlog"""

    rule = "unknown-task"


class StateError(TaskaiError):
    """Transition is not allowed from the task's current state"""

    rule = "already-done"


class GenerationError(TaskaiError):
    """The text-generation collaborator failed to produce a document"""

    rule = "generation-failed"


class BacklogFileError(TaskaiError):
    """Backlog file is missing or unreadable"""

    rule = "file-error"
