from __future__ import annotations

import copy
import os
import shlex
import sys
from pathlib import Path
from typing import Any

import pytest
import yaml


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = str(REPO_ROOT / "src")
FAKE_LLM = REPO_ROOT / "tests" / "fixtures" / "fake_llm_cli.py"

ABC_DOCUMENT: dict[str, Any] = {
    "project": "demo",
    "rust_version": "1.77",
    "tasks": [
        {
            "id": "A",
            "title": "Set up workspace",
            "depends": [],
            "state": "Todo",
            "deliverable": "Cargo.toml",
            "done_when": ["cargo build passes"],
        },
        {
            "id": "B",
            "title": "Write parser",
            "depends": ["A"],
            "state": "Todo",
            "deliverable": ["src/parser.rs", "tests/parser.rs"],
            "done_when": ["parser tests pass"],
        },
        {
            "id": "C",
            "title": "Wire CLI",
            "depends": ["A", "B"],
            "state": "Todo",
            "deliverable": ["src/main.rs"],
            "done_when": ["cli prints help", "cli parses a file"],
        },
    ],
}


@pytest.fixture(autouse=True)
def _configure_taskai_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    cmd = f"{shlex.quote(sys.executable)} {shlex.quote(str(FAKE_LLM))}"
    monkeypatch.setenv("TASKAI_LLM_CMD", cmd)
    monkeypatch.setenv("TASKAI_LLM_TIMEOUT_SEC", "10")
    monkeypatch.setenv("TASKAI_LLM_RETRIES", "0")
    monkeypatch.delenv("TASKAI_LLM_MODEL", raising=False)
    monkeypatch.delenv("TASKAI_LANG", raising=False)
    monkeypatch.delenv("TASKAI_STYLE", raising=False)
    monkeypatch.delenv("FAKE_LLM_MODE", raising=False)


@pytest.fixture
def abc_document() -> dict[str, Any]:
    return copy.deepcopy(ABC_DOCUMENT)


@pytest.fixture
def backlog_file(tmp_path: Path, abc_document: dict[str, Any]) -> Path:
    path = tmp_path / "backlog.yaml"
    path.write_text(yaml.safe_dump(abc_document, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def cli_cmd() -> list[str]:
    return [sys.executable, "-m", "taskai.cli"]


@pytest.fixture
def cli_env() -> dict[str, str]:
    env = os.environ.copy()
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = SRC_PATH if not existing else f"{SRC_PATH}:{existing}"
    return env
