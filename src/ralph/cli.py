"""Ralph CLI entry point."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, DownloadColumn, Progress, TaskID, TextColumn, TransferSpeedColumn

from ralph import __version__

if TYPE_CHECKING:
    from ralph.agents import ProviderInterface, RunMode, SessionConfig, SessionResult

console = Console()

# Type variable for decorated click commands
F = TypeVar("F", bound=Callable[..., object])


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="ralph", message="%(prog)s %(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Ralph - A dispatcher for AI provider agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)

    if ctx.invoked_subcommand is None:
        console.print(f"ralph {__version__} - A dispatcher for AI provider agents")
        console.print()
        console.print("Use 'ralph --help' for more information.")


@cli.command()
def version() -> None:
    """Display version information."""
    console.print(f"ralph {__version__}")


@cli.command()
@click.option(
    "--install-path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Executable to replace, assumed to be at this ralph's version (defaults to the running ralph)",
)
def upgrade(install_path: Path | None) -> None:
    """Upgrade ralph to the latest GitHub release."""
    from ralph.upgrade import (
        Downloader,
        FailureKind,
        LocalInstallation,
        UpgradeOrchestrator,
        UpgradeSettings,
        UpgradeState,
        UpgradeStatus,
        VersionResolver,
        permission_denied_suggestions,
    )

    settings = UpgradeSettings.from_env()
    installation = LocalInstallation.detect(install_path)

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id: TaskID | None = None

        def on_status(state: UpgradeState, message: str) -> None:
            if state == UpgradeState.EXTRACTING:
                # extraction only starts once the checksum matched
                console.print("[green]✓[/green] Verified SHA256 checksum.")
            elif state in (
                UpgradeState.RESOLVING,
                UpgradeState.COMPARING,
                UpgradeState.DOWNLOADING,
                UpgradeState.REPLACING,
            ):
                console.print(escape(message))

        def on_progress(downloaded: int, total: int | None) -> None:
            nonlocal task_id
            if task_id is None:
                task_id = progress.add_task("Downloading", total=total)
            progress.update(task_id, completed=downloaded)

        orchestrator = UpgradeOrchestrator(
            installation,
            resolver=VersionResolver(settings.api_url, timeout=settings.timeout),
            downloader=Downloader(timeout=settings.timeout),
            on_status=on_status,
            on_progress=on_progress,
        )
        outcome = orchestrator.run()

    if outcome.status == UpgradeStatus.ALREADY_LATEST:
        console.print(f"[green]✓[/green] Already up to date (v{outcome.current_version})")
        return

    if outcome.status == UpgradeStatus.UPGRADED:
        console.print(
            f"[green]✓[/green] Upgraded ralph: v{outcome.current_version} → "
            f"[cyan]v{outcome.target_version}[/cyan]"
        )
        return

    if outcome.kind == FailureKind.PERMISSION_DENIED:
        console.print(escape(permission_denied_suggestions(installation.executable_path)), style="red")
    else:
        console.print(f"[red]✗[/red] Upgrade failed: {escape(outcome.message)}")
        if outcome.kind == FailureKind.ROLLBACK_FAILED:
            console.print("[bold red]Manual intervention required:[/bold red] restore the file named above")
        elif outcome.kind in (FailureKind.REGISTRY_UNREACHABLE, FailureKind.DOWNLOAD_FAILED):
            console.print("[dim]Check your network connection and run 'ralph upgrade' again[/dim]")
    raise SystemExit(outcome.exit_code)


def _provider_option(func: F) -> F:
    from ralph.agents import DEFAULT_PROVIDER, PROVIDER_REGISTRY

    return click.option(
        "--provider",
        "-p",
        type=click.Choice(list(PROVIDER_REGISTRY)),
        default=DEFAULT_PROVIDER,
        show_default=True,
        help="AI provider to use",
    )(func)


def _prompt_file_option(func: F) -> F:
    return click.option(
        "--prompt-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Prompt file (defaults to .ralph/prompt.md, then the built-in prompt)",
    )(func)


def _timeout_option(func: F) -> F:
    return click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        help="Kill a provider run after this many seconds (default: no limit)",
    )(func)


def _prepare_session(
    provider_name: str,
    prompt_file: Path | None,
    mode: "RunMode",
    timeout: float | None = None,
) -> tuple["ProviderInterface", "SessionConfig"]:
    from ralph.agents import SessionConfig, get_provider, load_prompt

    provider = get_provider(provider_name)
    available, message = provider.check_installation()
    if not available:
        console.print(f"[red]✗[/red] {escape(message)}")
        raise SystemExit(1)

    try:
        prompt = load_prompt(mode, prompt_file)
    except ValueError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise SystemExit(1) from None

    console.print(f"Using AI provider: [cyan]{escape(provider.name)}[/cyan]")
    config = SessionConfig(working_dir=Path.cwd(), prompt=prompt, mode=mode, timeout_seconds=timeout)
    return provider, config


def _echo_line(line: str) -> None:
    console.print(line, markup=False, highlight=False)


def _fail_session(agent: "ProviderInterface", result: "SessionResult") -> NoReturn:
    """Report a failed provider run and exit with its status."""
    console.print(
        f"[red]✗[/red] {escape(agent.name)} exited with {result.status.value} (exit code {result.exit_code})"
    )
    # a killed process has a negative return code
    raise SystemExit(result.exit_code if result.exit_code and result.exit_code > 0 else 1)


@cli.command()
@_provider_option
@_prompt_file_option
@_timeout_option
def once(provider: str, prompt_file: Path | None, timeout: float | None) -> None:
    """Run the provider once (human-in-the-loop)."""
    from ralph.agents import RunMode, run_once

    agent, config = _prepare_session(provider, prompt_file, RunMode.ONCE, timeout)

    try:
        result = asyncio.run(run_once(agent, config, on_line=_echo_line))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise SystemExit(130) from None

    if result.error:
        console.print(result.error, markup=False, highlight=False, style="dim")
    if not result.success:
        _fail_session(agent, result)


@cli.command()
@_provider_option
@_prompt_file_option
@_timeout_option
@click.option(
    "--iterations",
    "-n",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Maximum number of iterations",
)
def loop(provider: str, prompt_file: Path | None, timeout: float | None, iterations: int) -> None:
    """Run the provider repeatedly until all tasks are done.

    Stops at the first failed iteration and exits with its status.
    """
    from ralph.agents import COMPLETION_SIGNAL, RunMode, run_loop

    agent, config = _prepare_session(provider, prompt_file, RunMode.LOOP, timeout)
    console.print(f"Max iterations: {iterations}\n")

    def on_iteration(i: int, total: int) -> None:
        console.rule(f"Iteration {i} / {total}")

    try:
        result = asyncio.run(
            run_loop(agent, config, iterations, on_iteration=on_iteration, on_line=_echo_line)
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Loop stopped[/yellow]")
        raise SystemExit(130) from None

    if result.failed:
        last = result.last
        if last.error:
            console.print(last.error, markup=False, highlight=False, style="dim")
        console.print(f"\nRalph loop stopped at iteration {result.iterations}")
        _fail_session(agent, last)

    if result.completed:
        console.print(f"[green]✓[/green] All tasks complete after {result.iterations} iterations.")
    else:
        console.print(f"\nRalph loop finished after {result.iterations} iterations")
        console.print(f"No {COMPLETION_SIGNAL} marker seen", markup=False, style="dim")


@cli.group()
def prompt() -> None:
    """Manage the prompt file."""
    pass


@prompt.command("init")
@click.option("--path", type=click.Path(dir_okay=False, path_type=Path), help="Prompt file to write")
@click.option("--once", "once_mode", is_flag=True, help="Write the single-run prompt instead of the loop prompt")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing prompt file")
def prompt_init(path: Path | None, once_mode: bool, force: bool) -> None:
    """Write the built-in prompt to a file for editing."""
    from ralph.agents import PROMPT_FILE, RunMode, write_default_prompt

    target = path or PROMPT_FILE
    mode = RunMode.ONCE if once_mode else RunMode.LOOP
    try:
        written = write_default_prompt(target, mode=mode, force=force)
    except FileExistsError as e:
        console.print(f"[yellow]{e}[/yellow]")
        console.print("Use --force to overwrite it.")
        raise SystemExit(1) from None

    console.print(f"[green]Prompt written to {written}[/green]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
