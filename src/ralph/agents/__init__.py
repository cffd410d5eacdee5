"""Provider dispatch for AI agent CLIs."""

from ralph.agents.interface import (
    COMPLETION_SIGNAL,
    ProviderInterface,
    RunMode,
    SessionConfig,
    AgentProcess,
    SessionResult,
    SessionStatus,
)
from ralph.agents.prompt import PROMPT_FILE, default_prompt, load_prompt, write_default_prompt
from ralph.agents.providers import (
    DEFAULT_PROVIDER,
    PROVIDER_REGISTRY,
    ClaudeProvider,
    CodexProvider,
    DroidProvider,
    GeminiProvider,
    get_provider,
)
from ralph.agents.runner import LoopResult, run_loop, run_once

__all__ = [
    "COMPLETION_SIGNAL",
    "ProviderInterface",
    "RunMode",
    "SessionConfig",
    "AgentProcess",
    "SessionResult",
    "SessionStatus",
    "PROMPT_FILE",
    "default_prompt",
    "load_prompt",
    "write_default_prompt",
    "DEFAULT_PROVIDER",
    "PROVIDER_REGISTRY",
    "DroidProvider",
    "CodexProvider",
    "ClaudeProvider",
    "GeminiProvider",
    "get_provider",
    "LoopResult",
    "run_loop",
    "run_once",
]
