"""
Prompt construction for hm.

Builds the system prompt, with the current platform and shell appended, and
the user message for a given command mode.
"""

import os
import platform
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple

from hm.config.settings import HmSettings

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful and concise command-line interface (CLI) assistant. "
    "You should provide clear and accurate explanations or suggestions for CLI commands and tasks. "
    "Prioritize commands and syntax appropriate for this platform and shell. "
    "If the user's query is unclear apologise that you aren't able to help."
)

UNKNOWN_SHELL = "unknown shell"


class PromptMode(str, Enum):
    """What the user asks hm to do."""
    EXPLAIN = "explain"
    SUGGEST = "suggest"

    @property
    def instruction(self) -> str:
        """Verb phrase that prefixes the user's input."""
        return _INSTRUCTIONS[self]


_INSTRUCTIONS = {
    PromptMode.EXPLAIN: "Explain the following command",
    PromptMode.SUGGEST: "Suggest a command from the following description",
}


@dataclass(frozen=True)
class CompletionRequest:
    """The two messages sent to the chat-completion endpoint."""
    system_prompt: str
    user_message: str


def detect_shell(environ: Optional[Mapping[str, str]] = None) -> str:
    """Name of the user's shell taken from ``$SHELL``.

    Returns the part after the last path separator, e.g. ``zsh`` for
    ``/bin/zsh``, or ``unknown shell`` when it cannot be determined.
    """
    env = os.environ if environ is None else environ
    shell = (env.get("SHELL") or "").strip()
    name = re.split(r"[\\/]", shell)[-1] if shell else ""
    return name or UNKNOWN_SHELL


def detect_platform() -> Tuple[str, str]:
    """Operating system and architecture, lowercased (e.g. ``linux``, ``x86_64``)."""
    system = platform.system().lower() or "unknown os"
    machine = platform.machine().lower() or "unknown architecture"
    return system, machine


def platform_context(
    environ: Optional[Mapping[str, str]] = None,
    platform_info: Optional[Tuple[str, str]] = None,
) -> str:
    """Sentence describing the platform, appended to every system prompt."""
    system, machine = platform_info or detect_platform()
    return f"The current platform is {system} {machine}, likely using {detect_shell(environ)}."


def build_system_prompt(
    settings: HmSettings,
    environ: Optional[Mapping[str, str]] = None,
    platform_info: Optional[Tuple[str, str]] = None,
) -> str:
    """Configured or built-in system prompt followed by the platform sentence."""
    base_prompt = settings.system_prompt or DEFAULT_SYSTEM_PROMPT
    return f"{base_prompt}\n\n{platform_context(environ, platform_info)}"


def build_user_message(mode: PromptMode, user_input: str) -> str:
    """Mode instruction followed by the user's text."""
    return f"{PromptMode(mode).instruction}: {user_input}"


def join_user_input(words: Iterable[str]) -> str:
    """Join positional CLI arguments with single spaces."""
    return " ".join(words)


def build_completion_request(
    mode: PromptMode,
    user_input: str,
    settings: HmSettings,
    environ: Optional[Mapping[str, str]] = None,
    platform_info: Optional[Tuple[str, str]] = None,
) -> CompletionRequest:
    """
    Build the request for one invocation.

    Args:
        mode: Explain or suggest
        user_input: The user's query
        settings: Effective settings; only ``system_prompt`` is used
        environ: Environment used to detect the shell (default: os.environ)
        platform_info: ``(os, arch)`` pair (default: detected)

    Returns:
        CompletionRequest with the system prompt and user message
    """
    return CompletionRequest(
        system_prompt=build_system_prompt(settings, environ, platform_info),
        user_message=build_user_message(mode, user_input),
    )
