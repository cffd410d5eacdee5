"""Prompt text injected into provider runs.

The built-in prompts drive a beads (``bd``) task workflow. Users can copy
them to a prompt file with ``ralph prompt init`` and edit it; the file is
picked up automatically from the working directory.
"""

import logging
from pathlib import Path
from typing import Final

from ralph.agents.interface import COMPLETION_SIGNAL, RunMode

logger = logging.getLogger(__name__)

PROMPT_FILE: Final = Path(".ralph") / "prompt.md"

_WORKFLOW_STEPS: Final = """\
Use bd (beads) for task tracking. Follow these steps:

1. Run 'bd ready' to find the next available task (not blocked by dependencies)
2. Run 'bd show <id>' to read the task details and acceptance criteria
3. Run 'bd update <id> --status in_progress' to claim the task
4. Implement the task according to the acceptance criteria. You need to read docs under `tasks` for better understanding of whole context.
5. Run quality gates (bun run build, cargo build if applicable)
6. Commit your changes with a descriptive message
"""

ONCE_PROMPT: Final = (
    _WORKFLOW_STEPS
    + """\
7. Run `bd update <id> ...` to add more content for the issue: requirement/root cause/your design solution/etc.
8. Run 'bd close <id>' to mark the task as complete

IMPORTANT:
- ONLY DO ONE TASK AT A TIME
- Do not start tasks that are blocked (have uncompleted dependencies)
- Verify all acceptance criteria before closing the task
"""
)

LOOP_PROMPT: Final = (
    _WORKFLOW_STEPS
    + f"""\
7. Run 'bd close <id>' to mark the task as complete

IMPORTANT:
- ONLY DO ONE TASK AT A TIME
- Do not start tasks that are blocked (have uncompleted dependencies)
- Verify all acceptance criteria before closing the task
- If all tasks are complete or blocked, output {COMPLETION_SIGNAL}
"""
)


def default_prompt(mode: RunMode) -> str:
    return LOOP_PROMPT if mode == RunMode.LOOP else ONCE_PROMPT


def load_prompt(mode: RunMode, path: Path | None = None, base_dir: Path | None = None) -> str:
    """Return the prompt for ``mode``.

    An explicit ``path`` must exist. Without one, ``.ralph/prompt.md`` under
    ``base_dir`` (default: the working directory) is used when present,
    otherwise the built-in prompt.

    Raises:
        FileNotFoundError: ``path`` was given but does not exist.
        ValueError: The prompt file is empty.
    """
    if path is None:
        candidate = (base_dir or Path.cwd()) / PROMPT_FILE
        if not candidate.is_file():
            return default_prompt(mode)
        path = candidate

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ValueError(f"Prompt file is empty: {path}")

    logger.debug("Loaded prompt from %s", path)
    return text


def write_default_prompt(path: Path, mode: RunMode = RunMode.LOOP, force: bool = False) -> Path:
    """Write the built-in prompt to ``path`` for editing.

    Raises:
        FileExistsError: ``path`` exists and ``force`` is not set.
    """
    if path.exists() and not force:
        raise FileExistsError(f"Prompt file already exists: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_prompt(mode), encoding="utf-8")
    return path
