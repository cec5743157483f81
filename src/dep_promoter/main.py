import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from .cli_config import (
    OUTPUT_FORMATS,
    apply_config_data,
    ComprehensiveConfig,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .completion import get_completion_scripts
from .engine import PromotionEngine, PromotionResult
from .error_handling import PromoterError, setup_error_handling
from .reporting import PromotionReporter
from .structured_logging import clear_run_context, configure_logging
from .workspace import build_snapshot, load_documents
from .writer import write_manifests

__version__ = "0.1.0"

console = Console()


def output_json_results(
    result: PromotionResult, output_file: Optional[str] = None, written=None
) -> None:
    """Export the promotion result as JSON."""
    data = result.to_dict()
    data["written"] = [str(path) for path in written or []]
    json_output = json.dumps(data, indent=2, ensure_ascii=False, default=str)

    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(json_output)
        Console(stderr=True).print(f"✅ Plan saved to {output_file}", style="green")
    else:
        click.echo(json_output)


def run_promotion(
    workspace_root: Optional[str],
    minimum_occurrences: int,
    dry_run: bool,
    quiet: bool,
    verbose: bool,
    output_format: str,
    output_file: Optional[str],
) -> PromotionResult:
    """Load the workspace, plan the promotion and apply it unless dry-running."""
    show_console = not quiet and output_format == "console"
    if show_console:
        console.print("🔍 Analyzing workspace...", style="yellow")

    root_path, root_document, member_documents = load_documents(
        Path(workspace_root) if workspace_root else None
    )
    snapshot = build_snapshot(root_path, root_document, member_documents)

    if show_console:
        console.print(
            f"Detecting common dependencies across {len(snapshot.members)} "
            "workspace members...",
            style="yellow",
        )

    result = PromotionEngine(minimum_occurrences).run(snapshot)

    written = []
    if not dry_run and result.has_changes:
        documents = dict(member_documents)
        documents[root_path] = root_document
        written = write_manifests(result.plan, documents)

    if output_format == "json":
        output_json_results(result, output_file, written)
    elif show_console:
        PromotionReporter(console, verbose=verbose).print_result(
            result, root_path.parent, dry_run=dry_run
        )

    clear_run_context()
    return result


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 dep-promoter: share common dependencies across a Cargo workspace

    Moves dependencies used by several workspace members into the
    workspace dependency table and points each member at the shared entry,
    keeping every member's features unchanged.
    """
    if version:
        console.print(f"dep-promoter version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _promotion_options(func):
    options = [
        click.option(
            "--workspace-root",
            "-w",
            type=click.Path(exists=True, file_okay=True, dir_okay=True),
            help="Path to workspace root (defaults to current directory)",
        ),
        click.option(
            "--min-occurrences",
            "-m",
            type=click.IntRange(min=1),
            help="Minimum number of members sharing a dependency (default from config or 2)",
        ),
        click.option("--quiet", "-q", is_flag=True, help="Suppress all output"),
        click.option(
            "--verbose",
            "-v",
            is_flag=True,
            help="Show every planned entry and all skipped dependencies",
        ),
        click.option(
            "--output-format",
            type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
            default=None,
            help="Output format for results (default from config or console)",
        ),
        click.option(
            "--output-file",
            "-o",
            type=click.Path(dir_okay=False),
            help="Save the plan to file (JSON format only)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@_promotion_options
@click.option("--dry-run", is_flag=True, help="Compute the plan without writing manifests")
def promote(
    workspace_root: Optional[str],
    min_occurrences: Optional[int],
    quiet: bool,
    verbose: bool,
    output_format: Optional[str],
    output_file: Optional[str],
    dry_run: bool,
) -> None:
    """
    Promote dependencies shared by several members to the workspace.

    Examples:

      dep-promoter promote

      dep-promoter promote --workspace-root ../my-workspace --min-occurrences 3

      dep-promoter promote --dry-run --output-format json -o plan.json
    """
    config = load_config()

    final_workspace_root = workspace_root or config.promotion.workspace_root
    final_min_occurrences = (
        min_occurrences
        if min_occurrences is not None
        else config.promotion.minimum_occurrences
    )
    final_quiet = quiet or config.promotion.quiet
    final_verbose = verbose or config.promotion.verbose
    final_dry_run = dry_run or config.promotion.dry_run
    final_output_format = (output_format or config.promotion.output_format).lower()

    if (
        isinstance(final_min_occurrences, bool)
        or not isinstance(final_min_occurrences, int)
        or final_min_occurrences < 1
    ):
        raise click.UsageError(
            f"minimum occurrences must be a positive integer, got {final_min_occurrences!r}"
        )

    if output_file and final_output_format != "json":
        raise click.ClickException("Output file can only be used with JSON format")

    configure_logging(config.logging.log_level)
    setup_error_handling(getattr(logging, config.logging.log_level.upper(), logging.WARNING))

    try:
        run_promotion(
            final_workspace_root,
            final_min_occurrences,
            final_dry_run,
            final_quiet,
            final_verbose,
            final_output_format,
            output_file,
        )
    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except PromoterError as e:
        if not final_quiet:
            Console(stderr=True).print(f"❌ Error: {e}", style="red", markup=False)
        sys.exit(1)


@cli.command()
@_promotion_options
@click.pass_context
def plan(ctx, **kwargs) -> None:
    """Show what `promote` would change without writing any manifest."""
    ctx.invoke(promote, dry_run=True, **kwargs)


@cli.command()
def info():
    """Show how promotion works and how to configure it."""
    info_text = """
[bold blue]🔗 What gets promoted:[/bold blue]

• Dependencies declared by at least [green]--min-occurrences[/green] members under the same kind
• Only when every member uses the same source (same registry crate, or same git repo and ref)
• [yellow]Path dependencies are never promoted[/yellow]

[bold blue]📝 How manifests change:[/bold blue]

• Root: [cyan]serde = { version = "1.0", default-features = false }[/cyan]
• Member: [cyan]serde = { workspace = true, features = ["derive"], default-features = true }[/cyan]
• The first version seen wins; differing requirements are reported for manual review

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]DEP_PROMOTER_MIN_OCCURRENCES[/cyan] - Minimum members sharing a dependency
• [cyan]DEP_PROMOTER_WORKSPACE_ROOT[/cyan] - Workspace root directory
• [cyan]DEP_PROMOTER_QUIET[/cyan] - Suppress all output
• [cyan]DEP_PROMOTER_LOG_LEVEL[/cyan] - Log level for structured logs

[bold blue]📄 Configuration Files:[/bold blue]

• [green].dep-promoter.json[/green] / [green].dep-promoter.yaml[/green] - Project-level config
• [green]~/.config/dep-promoter/config.json[/green] - User-level config

[bold blue]💡 Usage Examples:[/bold blue]

  # Promote in the current workspace
  dep-promoter promote

  # Preview the changes
  dep-promoter plan --verbose

  # Machine-readable plan
  dep-promoter plan --output-format json
"""
    console.print(
        Panel(
            info_text,
            title="[bold]dep-promoter Information[/bold]",
            border_style="blue",
        )
    )


@cli.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
def completion(shell: str):
    """Print the shell completion script for SHELL."""
    click.echo(get_completion_scripts()[shell])


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".dep-promoter.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(
        Panel("⚙️  [bold]Current Configuration[/bold]", border_style="blue")
    )

    console.print("\n[bold cyan]🔗 Promotion Settings:[/bold cyan]")
    console.print(f"  Minimum Occurrences: {current_config.promotion.minimum_occurrences}")
    console.print(
        f"  Workspace Root: {current_config.promotion.workspace_root or '(current directory)'}"
    )
    console.print(f"  Quiet: {current_config.promotion.quiet}")
    console.print(f"  Verbose: {current_config.promotion.verbose}")
    console.print(f"  Dry Run: {current_config.promotion.dry_run}")
    console.print(f"  Output Format: {current_config.promotion.output_format}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(f"  Max Manifest Size: {current_config.security.max_file_size_mb} MB")
    console.print(
        f"  Allowed Extensions: {', '.join(current_config.security.allowed_file_extensions)}"
    )

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    file_config = load_config_file(Path(config_file))
    if file_config is None:
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = ComprehensiveConfig()
    apply_config_data(candidate, file_config)
    errors = validate_config_values(candidate)
    if errors:
        console.print("❌ Configuration is invalid:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
