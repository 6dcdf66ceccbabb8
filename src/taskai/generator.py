"""
TASKAI - Backlog Generator
==========================
Turns a natural-language project description into a validated Backlog by
asking an external LLM command for a YAML document.

The command is configured with TASKAI_LLM_CMD and receives the prompt on
stdin; whatever it prints is searched for the YAML document, which then
goes through the same validation as any backlog file.
"""

import logging
import re
import subprocess
from typing import List, Optional

from .config import Settings
from .errors import GenerationError, StructuralError
from .schema import Backlog, loads

logger = logging.getLogger("taskai.generator")

DOCUMENT_SHAPE = """\
project: <project name>
tasks:
  - id: <unique id>
    title: <short imperative title>
    description: <optional details>
    depends: [<ids of tasks that must be done first>]
    state: Todo
    deliverable: [<file paths produced by the task>]
    done_when: [<checkable completion criteria>]"""

SYSTEM_PROMPTS = {
    "en": (
        "You convert project specifications into structured task backlogs for "
        "autonomous coding agents. Reply with ONE YAML document and nothing else.\n"
        "Rules:\n"
        "1) Every task has a unique id, a title, at least one deliverable and at "
        "least one done_when criterion.\n"
        "2) depends only lists ids declared in the same document and never forms a cycle.\n"
        "3) Every task starts in state Todo.\n"
        "4) Keep tasks small enough to finish in one working session.\n"
        "Document shape:\n"
    ),
    "fr": (
        "Tu convertis des spécifications de projet en backlogs de tâches structurés "
        "pour des agents de développement autonomes. Réponds avec UN SEUL document "
        "YAML et rien d'autre.\n"
        "Règles :\n"
        "1) Chaque tâche a un id unique, un titre, au moins un livrable (deliverable) "
        "et au moins un critère done_when.\n"
        "2) depends ne référence que des ids déclarés dans le même document, sans cycle.\n"
        "3) Chaque tâche commence à l'état Todo.\n"
        "4) Les tâches doivent pouvoir être terminées en une session de travail.\n"
        "Forme du document :\n"
    ),
}

STYLE_HINTS = {
    "standard": "Aim for 5 to 15 tasks.",
    "detailed": "Split the work finely; aim for 15 to 40 tasks with precise done_when criteria.",
    "minimal": "Use as few tasks as possible; aim for 3 to 6 tasks.",
}

_FENCE_RE = re.compile(r"```(?:ya?ml)?[ \t]*\n(.*?)```", re.DOTALL | re.IGNORECASE)
_PROJECT_LINE_RE = re.compile(r"^project:", re.MULTILINE)
_TASK_KEY_RE = re.compile(r"(?<![\w\"'])(id|title|depends|deliverable|done_when):")


def extract_yaml(text: str) -> str:
    """Pull the backlog document out of a raw LLM response.

    Handles fenced blocks (```yaml or bare ```) and prose before the first
    "project:" line. Text that already starts with the document is returned
    unchanged.
    """
    stripped = text.strip()
    if stripped.startswith("project:"):
        return stripped

    match = _FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    match = _PROJECT_LINE_RE.search(text)
    if match:
        return text[match.start():].strip()

    return stripped


def quote_task_keys(text: str) -> str:
    """Quote bare task keys, e.g. `{id:"T-1",title:"x"}` -> `{"id":"T-1","title":"x"}`.

    Compact flow mappings without a space after the colon are read by YAML as
    one plain scalar; quoting the key makes the colon a separator again.
    """
    return _TASK_KEY_RE.sub(r'"\1":', text)


class BacklogGenerator:
    """
    Backlog generation through an external LLM command.

    Usage:
        generator = BacklogGenerator(Settings.from_env())
        backlog = generator.generate(spec_text, id_prefix="API")
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    def build_prompt(self, description: str, id_prefix: Optional[str] = None) -> str:
        lines = [
            SYSTEM_PROMPTS[self.settings.lang] + DOCUMENT_SHAPE,
            "",
            STYLE_HINTS.get(self.settings.style, f"Style: {self.settings.style}."),
        ]
        if id_prefix:
            lines.append(f"Use task ids of the form {id_prefix}-1, {id_prefix}-2, ...")
        lines.extend(["", "PROJECT SPECIFICATION:", description.strip()])
        return "\n".join(lines)

    def generate(self, description: str, id_prefix: Optional[str] = None) -> Backlog:
        """Ask the LLM for a backlog and validate the result"""
        if not description.strip():
            raise GenerationError("project description is empty")

        prompt = self.build_prompt(description, id_prefix)
        response = self.call_llm(prompt)
        document = extract_yaml(response)

        try:
            backlog = loads(document)
        except StructuralError as e:
            backlog = self._retry_with_quoted_keys(document)
            if backlog is None:
                logger.error(f"Generated document rejected; response sample: {response[:200]!r}")
                raise
            logger.warning(f"Generated document accepted after quoting task keys ({e.rule})")

        logger.info(f"Generated backlog '{backlog.project}' with {len(backlog.all_tasks())} tasks")
        return backlog

    def call_llm(self, prompt: str) -> str:
        """Run the configured command, retrying on timeout, failure or empty output"""
        cmd = self._full_command()
        timeout_sec = self.settings.llm_timeout_sec
        retries = self.settings.llm_retries

        last_error = "unknown"
        for attempt in range(1, retries + 2):
            try:
                proc = subprocess.run(
                    cmd,
                    input=prompt,
                    capture_output=True,
                    text=True,
                    timeout=timeout_sec,
                )
            except FileNotFoundError as e:
                raise GenerationError(f"LLM command not found: {cmd[0]}") from e
            except subprocess.TimeoutExpired as e:
                last_error = f"timeout after {timeout_sec}s"
                if attempt > retries:
                    raise GenerationError(f"LLM call failed: {last_error}") from e
                logger.warning(f"LLM call attempt {attempt} failed: {last_error}")
                continue

            if proc.returncode != 0:
                tail = (proc.stderr or proc.stdout or "").strip()[-1500:]
                last_error = f"exit={proc.returncode}; {tail}"
            elif not proc.stdout.strip():
                last_error = "empty stdout"
            else:
                return proc.stdout

            if attempt > retries:
                raise GenerationError(f"LLM call failed: {last_error}")
            logger.warning(f"LLM call attempt {attempt} failed: {last_error}")

        raise GenerationError(f"LLM call failed: {last_error}")

    def _full_command(self) -> List[str]:
        cmd = self.settings.command()
        if self.settings.llm_model:
            cmd = [*cmd, "--model", self.settings.llm_model]
        return cmd

    def _retry_with_quoted_keys(self, document: str) -> Optional[Backlog]:
        repaired = quote_task_keys(document)
        if repaired == document:
            return None
        try:
            return loads(repaired)
        except StructuralError:
            return None
