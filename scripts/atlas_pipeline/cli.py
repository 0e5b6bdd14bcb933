"""
Command-line interface for the atlas pipeline.
Provides commands for building atlases, inspecting their state, and configuration.
"""

import os
import sys
import logging
from importlib import metadata
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table

from .config import PipelineConfig
from .pipeline import AtlasBuilder, BuildReport, PipelineError, setup_logging
from .processing.packer import PackingError
from .processing.staleness import SourceDirectoryError, find_atlas_output, is_stale, newer_sources

# Initialize typer app and rich console
app = typer.Typer(
    name="atlas-pipeline",
    help="Incremental texture atlas builder - Repack game and mod images only when they change",
    add_completion=False,
    rich_markup_mode="rich",
    epilog="""
[bold]Examples:[/bold]
  [cyan]python scripts/atlas_pipeline.py build[/cyan]                 Repack outdated atlases
  [cyan]python scripts/atlas_pipeline.py build --force[/cyan]         Repack every atlas
  [cyan]python scripts/atlas_pipeline.py status[/cyan]                Show which atlases are outdated
  [cyan]python scripts/atlas_pipeline.py build -c custom.toml[/cyan]  Use custom config

[bold]Environment Variables:[/bold]
  Use [cyan]python scripts/atlas_pipeline.py config --env-vars[/cyan] to see all available variables.
    """
)
console = Console()


@app.command()
def build(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    mods_dir: Optional[Path] = typer.Option(None, "--mods", help="Mods directory"),
    base_dir: Optional[Path] = typer.Option(None, "--base", help="Base game image directory"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for the base atlas"),
    force: bool = typer.Option(False, "--force", "-f", help="Repack every atlas even if it is up to date"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be packed without packing"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging")
):
    """Pack texture atlases whose source images changed."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, console)
    console.print("[bold blue]Building texture atlases...[/bold blue]")

    try:
        config = _load_config(config_file)
        _require_valid_config(config)
        builder = AtlasBuilder(config.pack_settings(), extensions=config.image_extensions,
                               atlas_name=config.atlas_name)

        mods_root = mods_dir or Path(config.mods_dir)
        base_source = base_dir or Path(config.base_images_dir)
        base_output = output_dir or Path(config.base_output_dir)

        if dry_run:
            targets = builder.collect_targets(mods_root, base_source, base_output)
            if not targets:
                console.print("[yellow]No atlas targets found.[/yellow]")
            for target in targets:
                stale = force or is_stale(target, builder.extensions)
                action = "pack" if stale else "skip"
                console.print(f"[yellow]DRY RUN:[/yellow] Would {action} {target.display_name} -> {target.description_path}")
            return

        report = builder.run(mods_root, base_source, base_output, force=force)
        _display_build_report(report)

    except PackingError as e:
        console.print(f"[red]Packing error:[/red] {e}")
        raise typer.Exit(1)
    except (PipelineError, SourceDirectoryError) as e:
        console.print(f"[red]Pipeline error:[/red] {e}")
        raise typer.Exit(1)
    except (OSError, ValueError, ImportError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def status(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    mods_dir: Optional[Path] = typer.Option(None, "--mods", help="Mods directory"),
    base_dir: Optional[Path] = typer.Option(None, "--base", help="Base game image directory"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for the base atlas")
):
    """Show whether each atlas is up to date."""
    try:
        config = _load_config(config_file)
        _require_valid_config(config)
        builder = AtlasBuilder(config.pack_settings(), extensions=config.image_extensions,
                               atlas_name=config.atlas_name)

        targets = builder.collect_targets(
            mods_dir or Path(config.mods_dir),
            base_dir or Path(config.base_images_dir),
            output_dir or Path(config.base_output_dir),
        )

        if not targets:
            console.print("[yellow]No atlas targets found.[/yellow]")
            return

        table = Table(title="Atlas Status")
        table.add_column("Target", style="cyan")
        table.add_column("Source", style="dim")
        table.add_column("Status", width=10)
        table.add_column("Newer Sources", style="yellow")

        for target in targets:
            newer = newer_sources(target, builder.extensions)
            if find_atlas_output(target) is None:
                state = "[red]missing[/red]"
            elif newer:
                state = "[yellow]stale[/yellow]"
            else:
                state = "[green]fresh[/green]"
            table.add_row(target.display_name, str(target.source_dir), state, str(len(newer)))

        console.print(table)

    except (PipelineError, SourceDirectoryError) as e:
        console.print(f"[red]Pipeline error:[/red] {e}")
        raise typer.Exit(1)
    except (OSError, ValueError, ImportError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    validate_config: bool = typer.Option(False, "--validate", help="Validate configuration file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    env_vars: bool = typer.Option(False, "--env-vars", help="Show available environment variables")
):
    """Manage pipeline configuration."""
    try:
        if env_vars:
            _display_env_vars()
            return

        if show or validate_config:
            config = _load_config(config_file)

            if show:
                _display_config(config)

            if validate_config:
                _require_valid_config(config)
                console.print("[green]✓ Configuration is valid[/green]")
        else:
            console.print("Use --show to display configuration, --validate to check it, or --env-vars to see environment variables.")

    except (OSError, ValueError, ImportError) as e:
        console.print(f"[red]Error managing configuration:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show atlas pipeline version information."""
    from . import __version__

    console.print("[bold]Atlas Pipeline[/bold]")
    console.print(f"Version: {__version__}")
    console.print("Python: " + sys.version.split()[0])

    deps_status = []
    for name, distribution in (("Pillow", "pillow"), ("Typer", "typer"), ("Rich", "rich")):
        try:
            deps_status.append((name, metadata.version(distribution), "✓"))
        except metadata.PackageNotFoundError:
            deps_status.append((name, "Not installed", "✗"))

    console.print("\n[bold]Dependencies:[/bold]")
    table = Table(show_header=False)
    table.add_column("Status", width=3)
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")

    for name, dep_version, dep_status in deps_status:
        color = "green" if dep_status == "✓" else "red"
        table.add_row(f"[{color}]{dep_status}[/{color}]", name, dep_version)

    console.print(table)


def _load_config(config_file: Optional[Path]) -> PipelineConfig:
    """Load configuration from file or use defaults with environment variable support."""
    config = None

    if config_file:
        if not config_file.exists():
            console.print(f"[red]Configuration file not found:[/red] {config_file}")
            raise typer.Exit(1)
        config = PipelineConfig.from_file(config_file)
        console.print(f"[dim]Using configuration: {config_file}[/dim]")
    else:
        default_configs = [
            Path("atlas_pipeline.toml"),
            Path("atlas_pipeline.json"),
            Path("scripts/atlas_pipeline.toml"),
            Path("scripts/atlas_pipeline.json")
        ]

        for config_path in default_configs:
            if config_path.exists():
                console.print(f"[dim]Using configuration: {config_path}[/dim]")
                config = PipelineConfig.from_file(config_path)
                break

        if config is None:
            console.print("[dim]Using default configuration[/dim]")
            config = PipelineConfig()

    config = PipelineConfig._apply_env_overrides(config)

    env_vars_used = [key for key in os.environ if key.startswith('ATLAS_PIPELINE_')]
    if env_vars_used:
        console.print(f"[dim]Environment overrides applied: {len(env_vars_used)} variables[/dim]")

    return config


def _require_valid_config(config: PipelineConfig) -> None:
    """Exit with the validation errors if the configuration is unusable."""
    errors = config.validate()
    if errors:
        console.print("[red]Configuration validation errors:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        raise typer.Exit(1)


def _display_build_report(report: BuildReport) -> None:
    """Display the outcome of a build pass."""
    if not report.targets:
        console.print("[yellow]No atlas targets found.[/yellow]")
    else:
        table = Table(show_header=False, box=None)
        table.add_column("Target", style="cyan")
        table.add_column("Result")

        for target in report.packed:
            table.add_row(target.display_name, "[green]packed[/green]")
        for target in report.skipped:
            table.add_row(target.display_name, "[dim]up to date[/dim]")

        console.print(table)

    console.print(f"[green]✓[/green] Packing textures - {report.elapsed_ms}ms")


def _display_config(config: PipelineConfig) -> None:
    """Display configuration in a formatted table."""
    table = Table(title="Atlas Pipeline Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    # Paths
    table.add_row("Base Images Directory", config.base_images_dir)
    table.add_row("Base Output Directory", config.base_output_dir)
    table.add_row("Mods Directory", config.mods_dir)

    # Atlas naming and sources
    table.add_row("Atlas Name", config.atlas_name)
    table.add_row("Image Extensions", ", ".join(config.image_extensions))

    # Packing settings
    table.add_row("Max Page Size", f"{config.max_width}×{config.max_height}")
    table.add_row("Combine Subdirectories", str(config.combine_subdirectories))
    table.add_row("Power Of Two", str(config.power_of_two))
    table.add_row("Fast", str(config.fast))
    table.add_row("Filter", f"{config.filter_min}, {config.filter_mag}")
    table.add_row("Padding", str(config.padding))
    table.add_row("Format", config.format)

    console.print(table)


def _display_env_vars() -> None:
    """Display available environment variables for configuration."""
    table = Table(title="Atlas Pipeline Environment Variables")
    table.add_column("Environment Variable", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Example", style="green")

    env_vars = [
        ("ATLAS_PIPELINE_BASE_IMAGES_DIR", "Base game image directory", "../Images"),
        ("ATLAS_PIPELINE_BASE_OUTPUT_DIR", "Output directory for the base atlas", "."),
        ("ATLAS_PIPELINE_MODS_DIR", "Mods directory path", "mods"),
        ("ATLAS_PIPELINE_ATLAS_NAME", "Atlas file base name", "game"),
        ("ATLAS_PIPELINE_IMAGE_EXTENSIONS", "Comma-separated source extensions", "png,jpg,jpeg"),
        ("ATLAS_PIPELINE_MAX_WIDTH", "Maximum page width in pixels", "4096"),
        ("ATLAS_PIPELINE_MAX_HEIGHT", "Maximum page height in pixels", "4096"),
        ("ATLAS_PIPELINE_COMBINE_SUBDIRECTORIES", "Pack subdirectories together (true/false)", "true"),
        ("ATLAS_PIPELINE_POWER_OF_TWO", "Power-of-two page sizes (true/false)", "true"),
        ("ATLAS_PIPELINE_FAST", "Fast packing (true/false)", "true"),
        ("ATLAS_PIPELINE_FILTER", "Texture filter for min and mag", "MipMapLinearLinear"),
        ("ATLAS_PIPELINE_PADDING", "Padding between images in pixels", "2"),
    ]

    for var_name, description, example in env_vars:
        table.add_row(var_name, description, example)

    console.print(table)
    console.print("\n[dim]Set these environment variables to override configuration file settings.[/dim]")
    console.print("[dim]Example: export ATLAS_PIPELINE_MODS_DIR=mods[/dim]")


if __name__ == "__main__":
    app()
