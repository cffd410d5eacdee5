"""Run a provider once, or repeatedly until it reports completion."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ralph.agents.interface import ProviderInterface, RunMode, SessionConfig, SessionResult

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]
IterationCallback = Callable[[int, int], None]


@dataclass
class LoopResult:
    """Outcome of a loop run."""

    iterations: int
    completed: bool
    results: list[SessionResult] = field(default_factory=list)

    @property
    def last(self) -> SessionResult | None:
        return self.results[-1] if self.results else None

    @property
    def failed(self) -> bool:
        """True when the loop was cut short by an unsuccessful session."""
        return self.last is not None and not self.last.success


async def run_once(
    provider: ProviderInterface,
    config: SessionConfig,
    on_line: LineCallback | None = None,
) -> SessionResult:
    """Start one provider session and wait for it to finish."""
    handle = await provider.start_session(config)
    result = await handle.wait(on_line=on_line)
    logger.debug(
        "%s finished with status %s (exit code %s)",
        provider.name,
        result.status.value,
        result.exit_code,
    )
    return result


async def run_loop(
    provider: ProviderInterface,
    config: SessionConfig,
    iterations: int,
    on_iteration: IterationCallback | None = None,
    on_line: LineCallback | None = None,
) -> LoopResult:
    """Run ``provider`` up to ``iterations`` times.

    Stops after the first session whose output contains the completion
    signal, or after the first session that fails or times out.
    """
    if iterations < 1:
        raise ValueError("iterations must be a positive integer")

    config.mode = RunMode.LOOP
    loop = LoopResult(iterations=0, completed=False)

    for i in range(1, iterations + 1):
        if on_iteration:
            on_iteration(i, iterations)

        result = await run_once(provider, config, on_line=on_line)
        loop.results.append(result)
        loop.iterations = i

        if not result.success:
            logger.warning(f"Iteration {i} ended with {result.status.value} (exit code {result.exit_code})")
            break

        if result.has_completion_signal:
            loop.completed = True
            break

    return loop
