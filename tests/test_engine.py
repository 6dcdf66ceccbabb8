from __future__ import annotations

from typing import Any

import pytest

from taskai.engine import (
    blocking_dependencies,
    find_cycle,
    mark_done,
    progress,
    ready_tasks,
)
from taskai.errors import NotFoundError, StateError, StructuralError
from taskai.schema import TaskState, parse, serialize


def _task(task_id: str, depends: list[str] | None = None, state: str = "Todo") -> dict[str, Any]:
    return {
        "id": task_id,
        "title": f"Task {task_id}",
        "depends": depends or [],
        "state": state,
        "deliverable": f"{task_id.lower()}.txt",
        "done_when": ["it exists"],
    }


def _ids(tasks) -> list[str]:
    return [t.id for t in tasks]


@pytest.mark.unit
def test_ready_set_walks_the_chain(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    assert _ids(ready_tasks(backlog)) == ["A"]

    mark_done(backlog, "A")
    assert _ids(ready_tasks(backlog)) == ["B"]

    mark_done(backlog, "B")
    assert _ids(ready_tasks(backlog)) == ["C"]

    mark_done(backlog, "C")
    assert ready_tasks(backlog) == []


@pytest.mark.unit
def test_ready_set_keeps_declaration_order() -> None:
    backlog = parse({
        "project": "p",
        "tasks": [_task("Z"), _task("M", ["Z"], "Todo"), _task("A"), _task("B", ["A"])],
    })
    assert _ids(ready_tasks(backlog)) == ["Z", "A"]
    mark_done(backlog, "A")
    mark_done(backlog, "Z")
    assert _ids(ready_tasks(backlog)) == ["M", "B"]


@pytest.mark.unit
def test_task_without_depends_is_ready_iff_todo() -> None:
    backlog = parse({"project": "p", "tasks": [_task("A"), _task("B", state="Done")]})
    assert _ids(ready_tasks(backlog)) == ["A"]


@pytest.mark.unit
def test_duplicate_depends_entries_are_one_edge() -> None:
    backlog = parse({"project": "p", "tasks": [_task("A"), _task("B", ["A", "A"])]})
    assert blocking_dependencies(backlog, backlog.get_task("B")) == ["A"]
    mark_done(backlog, "A")
    assert _ids(ready_tasks(backlog)) == ["B"]


@pytest.mark.unit
def test_epic_tasks_are_resolved_after_standalone_tasks() -> None:
    backlog = parse({
        "project": "p",
        "tasks": [_task("A")],
        "epics": [{"id": "E", "title": "Epic", "tasks": [_task("E-1"), _task("E-2", ["A"])]}],
    })
    assert _ids(ready_tasks(backlog)) == ["A", "E-1"]
    mark_done(backlog, "A")
    assert _ids(ready_tasks(backlog)) == ["E-1", "E-2"]


@pytest.mark.unit
def test_mark_done_unknown_id_leaves_backlog_unchanged(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    before = serialize(backlog)
    with pytest.raises(NotFoundError) as exc:
        mark_done(backlog, "NOPE")
    assert exc.value.task_id == "NOPE"
    assert exc.value.rule == "unknown-task"
    assert serialize(backlog) == before


@pytest.mark.unit
def test_mark_done_is_idempotent(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    mark_done(backlog, "A")
    task = mark_done(backlog, "A")
    assert task.state == TaskState.DONE
    assert _ids(ready_tasks(backlog)) == ["B"]


@pytest.mark.unit
def test_mark_done_strict_rejects_done_task(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    mark_done(backlog, "A")
    with pytest.raises(StateError) as exc:
        mark_done(backlog, "A", strict=True)
    assert exc.value.task_id == "A"
    assert exc.value.rule == "already-done"


@pytest.mark.unit
def test_mark_done_forces_blocked_task(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    task = mark_done(backlog, "C")
    assert task.state == TaskState.DONE
    assert "C" not in _ids(ready_tasks(backlog))
    assert _ids(ready_tasks(backlog)) == ["A"]


@pytest.mark.unit
def test_two_task_cycle_rejected() -> None:
    with pytest.raises(StructuralError) as exc:
        parse({"project": "p", "tasks": [_task("A", ["B"]), _task("B", ["A"])]})
    assert exc.value.rule == "dependency-cycle"
    assert exc.value.task_id in {"A", "B"}
    assert "A -> B -> A" in str(exc.value)


@pytest.mark.unit
def test_self_dependency_rejected() -> None:
    with pytest.raises(StructuralError) as exc:
        parse({"project": "p", "tasks": [_task("A"), _task("B", ["B"])]})
    assert exc.value.rule == "dependency-cycle"
    assert exc.value.task_id == "B"


@pytest.mark.unit
def test_long_cycle_reports_only_cycle_members() -> None:
    document = {
        "project": "p",
        "tasks": [_task("ROOT", ["X"]), _task("X", ["Y"]), _task("Y", ["Z"]), _task("Z", ["X"])],
    }
    with pytest.raises(StructuralError) as exc:
        parse(document)
    assert exc.value.task_id == "X"
    assert "X -> Y -> Z -> X" in str(exc.value)


@pytest.mark.unit
def test_diamond_is_not_a_cycle() -> None:
    backlog = parse({
        "project": "p",
        "tasks": [_task("A"), _task("B", ["A"]), _task("C", ["A"]), _task("D", ["B", "C"])],
    })
    assert find_cycle(backlog) is None


@pytest.mark.unit
def test_dangling_reference_rejected() -> None:
    with pytest.raises(StructuralError) as exc:
        parse({"project": "p", "tasks": [_task("A"), _task("B", ["A", "GHOST"])]})
    assert exc.value.rule == "dangling-reference"
    assert exc.value.task_id == "B"
    assert "GHOST" in str(exc.value)


@pytest.mark.unit
def test_deep_chain_does_not_recurse() -> None:
    tasks = [_task("T0")] + [_task(f"T{i}", [f"T{i - 1}"]) for i in range(1, 3000)]
    backlog = parse({"project": "p", "tasks": tasks})
    assert _ids(ready_tasks(backlog)) == ["T0"]


@pytest.mark.unit
def test_progress_counts(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    mark_done(backlog, "A")
    prog = progress(backlog)
    assert (prog.total, prog.done, prog.todo, prog.ready) == (3, 1, 2, 1)
    assert prog.percent == 33


@pytest.mark.unit
def test_mark_done_strict_is_keyword_only(abc_document: dict[str, Any]) -> None:
    backlog = parse(abc_document)
    with pytest.raises(TypeError):
        mark_done(backlog, "A", True)
    assert backlog.get_task("A").state == TaskState.TODO
