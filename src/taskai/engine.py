"""
TASKAI - Resolution Engine
==========================
Derives readiness from a validated Backlog and applies the one supported
mutation (Todo -> Done).

A task is ready when it is Todo and every task it depends on is Done.
Blocked-ness is always recomputed, never stored.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import NotFoundError, StateError, StructuralError
from .schema import Backlog, Task, TaskState

logger = logging.getLogger("taskai.engine")

# DFS colours
UNVISITED, VISITING, VISITED = 0, 1, 2


@dataclass
class Progress:
    """Counts over the whole task sequence"""
    total: int
    done: int
    todo: int
    ready: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 0
        return int((self.done / self.total) * 100)


# ========================================
# GRAPH VALIDATION
# ========================================

def validate_graph(backlog: Backlog) -> None:
    """Check ids, references and acyclicity; raise StructuralError on the first problem"""
    tasks = backlog.all_tasks()
    if not tasks:
        raise StructuralError("backlog has no tasks", rule="empty-backlog")

    seen = set()
    for task in tasks:
        if task.id in seen:
            raise StructuralError(
                "id is declared more than once",
                task_id=task.id,
                rule="duplicate-id"
            )
        seen.add(task.id)

    for task in tasks:
        for dep_id in _unique(task.depends):
            if dep_id not in seen:
                raise StructuralError(
                    f"depends on non-existent task {dep_id}",
                    task_id=task.id,
                    rule="dangling-reference"
                )

    cycle = find_cycle(backlog)
    if cycle:
        raise StructuralError(
            f"dependency cycle detected: {' -> '.join(cycle)}",
            task_id=cycle[0],
            rule="dependency-cycle"
        )

    logger.debug(f"Validated {len(tasks)} tasks in {backlog.project}")


def find_cycle(backlog: Backlog) -> Optional[List[str]]:
    """Return one dependency cycle as a closed path (A -> B -> A), or None.

    Three-colour depth-first traversal started from each task in declaration
    order; an edge into a VISITING node closes a cycle. Unknown ids are
    skipped here and reported by validate_graph.
    """
    graph: Dict[str, List[str]] = {}
    for task in backlog.all_tasks():
        graph.setdefault(task.id, _unique(task.depends))

    colour = {task_id: UNVISITED for task_id in graph}

    for root in graph:
        if colour[root] != UNVISITED:
            continue

        path = [root]
        stack = [iter(graph[root])]
        colour[root] = VISITING

        while stack:
            dep_id = next(stack[-1], None)
            if dep_id is None:
                colour[path.pop()] = VISITED
                stack.pop()
                continue
            if dep_id not in colour:
                continue
            if colour[dep_id] == VISITING:
                start = path.index(dep_id)
                return path[start:] + [dep_id]
            if colour[dep_id] == UNVISITED:
                colour[dep_id] = VISITING
                path.append(dep_id)
                stack.append(iter(graph[dep_id]))

    return None


# ========================================
# READINESS
# ========================================

def blocking_dependencies(backlog: Backlog, task: Task) -> List[str]:
    """Dependency ids of task that are not Done yet, in declaration order"""
    blocking = []
    for dep_id in _unique(task.depends):
        dep_task = backlog.get_task(dep_id)
        if dep_task is None or dep_task.state != TaskState.DONE:
            blocking.append(dep_id)
    return blocking


def is_ready(backlog: Backlog, task: Task) -> bool:
    if task.state != TaskState.TODO:
        return False
    return not blocking_dependencies(backlog, task)


def ready_tasks(backlog: Backlog) -> List[Task]:
    """Tasks eligible for execution, in backlog order"""
    return [task for task in backlog.all_tasks() if is_ready(backlog, task)]


def progress(backlog: Backlog) -> Progress:
    tasks = backlog.all_tasks()
    done = sum(1 for t in tasks if t.state == TaskState.DONE)
    return Progress(
        total=len(tasks),
        done=done,
        todo=len(tasks) - done,
        ready=len(ready_tasks(backlog))
    )


# ========================================
# STATE TRANSITIONS
# ========================================

def mark_done(backlog: Backlog, task_id: str, *, strict: bool = False) -> Task:
    """Move a task to Done.

    The task's own dependencies are deliberately not checked: forcing
    completion is a valid operator override.

    Marking an already-Done task succeeds without change unless strict is
    set, in which case StateError is raised. Unknown ids raise NotFoundError.
    Either error leaves the backlog untouched.
    """
    task = backlog.get_task(task_id)
    if task is None:
        raise NotFoundError("no such task in backlog", task_id=task_id)

    if task.state == TaskState.DONE:
        if strict:
            raise StateError("task is already Done", task_id=task_id)
        logger.info(f"Task {task_id} already Done, nothing to change")
        return task

    blocking = blocking_dependencies(backlog, task)
    if blocking:
        logger.warning(f"Forcing {task_id} to Done while blocked by: {blocking}")

    task.state = TaskState.DONE
    logger.info(f"Marked {task_id} as Done")
    return task


def _unique(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(ids))
