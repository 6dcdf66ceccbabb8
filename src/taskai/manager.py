"""
TASKAI - Backlog Manager
========================
Host side of the backlog core: reads and writes backlog files, exposes the
validate / next / mark-done entry points, and renders human-readable
reports.

Format is chosen from the file suffix: .json is JSON, anything else YAML.
"""

import logging
from pathlib import Path
from typing import List, Union

from . import engine
from .errors import BacklogFileError
from .schema import Backlog, Task, TaskState, dumps, loads

logger = logging.getLogger("taskai.manager")

PathLike = Union[str, Path]


class BacklogManager:
    """
    File-backed backlog operations.

    The manager holds no state between calls: every entry point loads the
    document, works on it and (for mark_done) writes it back. Callers that
    share a file across processes must serialize access themselves.
    """

    # ========================================
    # PERSISTENCE OPERATIONS
    # ========================================

    @staticmethod
    def format_for(path: PathLike) -> str:
        """Document format for a file path"""
        return "json" if Path(path).suffix.lower() == ".json" else "yaml"

    def load(self, path: PathLike) -> Backlog:
        """Load and validate a backlog file"""
        file_path = Path(path)
        if not file_path.exists() or file_path.is_dir():
            raise BacklogFileError(f"Backlog file not found: {file_path}")

        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BacklogFileError(f"Cannot read backlog file {file_path}: {e}") from e

        backlog = loads(text, self.format_for(file_path))
        logger.info(f"📂 Loaded backlog: {backlog.project} ({engine.progress(backlog).percent}% complete)")
        return backlog

    def save(self, backlog: Backlog, path: PathLike) -> None:
        """Write a backlog file in the format implied by its suffix"""
        file_path = Path(path)
        text = dumps(backlog, self.format_for(file_path))
        try:
            file_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise BacklogFileError(f"Cannot write backlog file {file_path}: {e}") from e
        logger.info(f"✅ Saved backlog: {backlog.project} -> {file_path}")

    # ========================================
    # TASK OPERATIONS
    # ========================================

    def validate(self, path: PathLike) -> Backlog:
        return self.load(path)

    def next(self, path: PathLike) -> List[Task]:
        """Tasks ready to be worked on"""
        backlog = self.load(path)
        ready = engine.ready_tasks(backlog)
        logger.info(f"▶️ READY: {len(ready)} tasks available to start")
        return ready

    def mark_done(self, path: PathLike, task_id: str, *, strict: bool = False) -> Task:
        """Mark a task Done and persist; the file is only rewritten on change"""
        backlog = self.load(path)
        task = backlog.get_task(task_id)
        was_done = task is not None and task.state == TaskState.DONE

        task = engine.mark_done(backlog, task_id, strict=strict)
        if not was_done:
            self.save(backlog, path)
        return task

    # ========================================
    # REPORTING
    # ========================================

    def render_ready(self, tasks: List[Task]) -> str:
        """Human list of ready tasks with their deliverables"""
        if not tasks:
            return "No tasks are ready to work on."

        lines = ["Tasks ready to work on:"]
        for task in tasks:
            lines.append(f"{task.id}: {task.title}")
            if task.description:
                for line in task.description.splitlines():
                    lines.append(f"  {line}")
            if len(task.deliverable) == 1:
                lines.append(f"  Deliverable: {task.deliverable[0]}")
            else:
                lines.append("  Deliverables:")
                for path in task.deliverable:
                    lines.append(f"    - {path}")
            lines.append("")
        return "\n".join(lines).rstrip()

    def status_report(self, backlog: Backlog) -> str:
        """Progress bar plus one line per task"""
        prog = engine.progress(backlog)

        lines = [
            f"📋 {backlog.project}",
            f"Progress: {'█' * (prog.percent // 10)}{'░' * (10 - prog.percent // 10)} {prog.percent}%",
            f"Done: {prog.done}/{prog.total} | Ready: {prog.ready}",
            "",
            "Tasks:"
        ]

        for task in backlog.tasks:
            lines.append(self._status_line(backlog, task))

        for epic in backlog.epics:
            lines.append(f"  [{epic.id}] {epic.title}")
            for task in epic.tasks:
                lines.append("  " + self._status_line(backlog, task))

        return "\n".join(lines)

    def _status_line(self, backlog: Backlog, task: Task) -> str:
        if task.state == TaskState.DONE:
            return f"  ✅ [{task.id}] {task.title}"
        blocking = engine.blocking_dependencies(backlog, task)
        if blocking:
            return f"  🟡 [{task.id}] {task.title} (blocked by: {', '.join(blocking)})"
        return f"  ⬜ [{task.id}] {task.title}"
