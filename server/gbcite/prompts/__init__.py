"""Instruction prompts sent to the model endpoint.

Each task keeps a ``<task>/system.txt`` sent verbatim and a ``<task>/user.txt``
``string.Template`` filled with request values.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from string import Template

_PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def get_prompt(name: str) -> str:
    filename = name if name.endswith(".txt") else f"{name}.txt"
    path = _PROMPTS_DIR / filename
    if not path.is_file():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8")


def prompt_placeholders(name: str) -> frozenset[str]:
    template = Template(get_prompt(name))
    if not template.is_valid():
        raise ValueError(f"Prompt '{name}' contains an invalid '$' placeholder.")
    return frozenset(template.get_identifiers())


def render_prompt(name: str, **values: object) -> str:
    expected = prompt_placeholders(name)
    missing = sorted(expected - values.keys())
    if missing:
        raise KeyError(f"Missing prompt variable '{missing[0]}' for prompt '{name}'.")
    unexpected = sorted(values.keys() - expected)
    if unexpected:
        raise ValueError(f"Prompt '{name}' has no placeholder for: {', '.join(unexpected)}.")
    normalized = {key: "" if value is None else str(value) for key, value in values.items()}
    return Template(get_prompt(name)).substitute(normalized)


@dataclass(frozen=True)
class PromptPair:
    task: str
    system: str
    variables: frozenset[str]

    def render_user(self, **values: object) -> str:
        return render_prompt(f"{self.task}/user", **values)


@lru_cache(maxsize=None)
def load_prompt_pair(task: str, *, variables: tuple[str, ...] = ()) -> PromptPair:
    """Load ``task``'s system/user prompts and check the user placeholders.

    The system prompt must carry no placeholders, since it is sent as-is. The
    user prompt's placeholders must be exactly ``variables``.
    """
    if prompt_placeholders(f"{task}/system"):
        raise ValueError(f"System prompt for '{task}' must not contain placeholders.")
    found = prompt_placeholders(f"{task}/user")
    if found != frozenset(variables):
        raise ValueError(
            f"User prompt for '{task}' expects {sorted(found)}, caller supplies {sorted(variables)}."
        )
    return PromptPair(task=task, system=get_prompt(f"{task}/system"), variables=found)
