"""Provider-specific command lines."""

from ralph.agents.interface import ProviderInterface, RunMode


class DroidProvider(ProviderInterface):
    """Factory Droid CLI."""

    @property
    def name(self) -> str:
        return "droid"

    @property
    def command(self) -> str:
        return "droid"

    def build_command(self, prompt: str, mode: RunMode) -> list[str]:
        cmd = [self.command, "exec"]
        if mode == RunMode.LOOP:
            # medium autonomy allows git commit but not push
            cmd.extend(["--auto", "medium", "--output-format", "stream-json"])
        else:
            cmd.extend(["--output-format", "stream-json", "--skip-permissions-unsafe"])
        cmd.append(prompt)
        return cmd


class CodexProvider(ProviderInterface):
    """OpenAI Codex CLI."""

    @property
    def name(self) -> str:
        return "codex"

    @property
    def command(self) -> str:
        return "codex"

    def build_command(self, prompt: str, mode: RunMode) -> list[str]:
        cmd = [self.command, "exec", "--full-auto"]
        if mode == RunMode.LOOP:
            cmd.append("--sandbox")
        cmd.extend(["--json", prompt])
        return cmd


class ClaudeProvider(ProviderInterface):
    """Claude Code CLI."""

    @property
    def name(self) -> str:
        return "claude"

    @property
    def command(self) -> str:
        return "claude"

    def build_command(self, prompt: str, mode: RunMode) -> list[str]:
        return [
            self.command,
            "-p",
            "--output-format",
            "stream-json",
            "--dangerously-skip-permissions",
            prompt,
        ]


class GeminiProvider(ProviderInterface):
    """Gemini CLI."""

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def command(self) -> str:
        return "gemini"

    def build_command(self, prompt: str, mode: RunMode) -> list[str]:
        # --yolo skips permission prompts
        return [self.command, "-p", "--output-format", "stream-json", "--yolo", prompt]


# Provider registry
PROVIDER_REGISTRY: dict[str, type[ProviderInterface]] = {
    "droid": DroidProvider,
    "codex": CodexProvider,
    "claude": ClaudeProvider,
    "gemini": GeminiProvider,
}

DEFAULT_PROVIDER = "droid"


def get_provider(name: str) -> ProviderInterface:
    """Get a provider instance by name.

    Raises:
        ValueError: If the provider is not registered.
    """
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(PROVIDER_REGISTRY)
        raise ValueError(f"Invalid provider '{name}'. Available providers: {available}")

    return PROVIDER_REGISTRY[name]()
