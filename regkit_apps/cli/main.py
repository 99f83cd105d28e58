"""CLI application for RegKit."""

import asyncio
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.prompt import Confirm, Prompt

from regkit.build import build_registry
from regkit.config import ProjectConfig, load_config, load_config_optional, save_config
from regkit.diff import FileDiff, print_diff
from regkit.errors import ConfigError, RegkitError
from regkit.graph import (
    ResolvedWantedItem,
    parse_wanted_items,
    resolve_tree,
    resolve_wanted_items,
    select_init_items,
)
from regkit.install import InstallPlan, Installer, apply_plan, fetch_items, find_installed
from regkit.log import setup_logging
from regkit.manifest import OPTIONAL_ROLES
from regkit.outputs import write_outputs
from regkit.providers import default_providers, resolve_registries

console = Console()

app = typer.Typer(
    name="regkit",
    help="RegKit - Build code registries and add their items to your project",
    add_completion=False,
)


def prompt_registry(item: str, registries: list[str]) -> str:
    return Prompt.ask(
        f"Multiple registries contain [cyan]{item}[/cyan]. Please select one",
        choices=registries,
        default=registries[0],
        console=console,
    )


def prompt_path(item_type: str, suggestion: str | None) -> str:
    return Prompt.ask(
        f"Where would you like to add [cyan]{item_type}[/cyan]?",
        default=suggestion,
        console=console,
    )


def confirm_diff(diff: FileDiff) -> bool:
    print_diff(diff, console)
    return Confirm.ask(f"Overwrite {diff.from_label}?", default=False, console=console)


def confirm_init_item(item: str, registry: str) -> bool:
    return Confirm.ask(
        f"Add [cyan]{item}[/cyan] from {registry}?", default=False, console=console
    )


async def resolve_items(
    specs: list[str],
    config: ProjectConfig,
    cwd: Path,
    roles: list[str],
    interactive: bool,
) -> list[ResolvedWantedItem]:
    """Resolve registries, the item graph and item contents."""
    providers = default_providers(cwd)
    wanted, needed = parse_wanted_items(specs, providers, config.registries)

    async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        registries = await resolve_registries(needed, providers, client=client)
        resolved = resolve_wanted_items(
            wanted, registries, select_registry=prompt_registry if interactive else None
        )
        tree = resolve_tree(resolved, include_roles=roles)
        return await fetch_items(tree.values(), roles, client=client)


async def resolve_installed(
    config: ProjectConfig, cwd: Path, installer: Installer
) -> list[ResolvedWantedItem]:
    """Fetch every item of the configured registries that is already installed."""
    if not config.registries:
        raise ConfigError(
            "No registries to update from",
            "Configure `registries` or pass --registry.",
        )

    async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        registries = await resolve_registries(
            config.registries, default_providers(cwd), client=client
        )
        installed = find_installed(registries.values(), installer)
        tree = resolve_tree(installed)
        return await fetch_items(tree.values(), client=client)


async def resolve_init_items(
    config: ProjectConfig, cwd: Path, interactive: bool
) -> list[ResolvedWantedItem]:
    """Fetch the items the configured registries add on init."""
    async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        registries = await resolve_registries(
            config.registries, default_providers(cwd), client=client
        )
        wanted = select_init_items(
            registries, confirm_optional=confirm_init_item if interactive else None
        )
        tree = resolve_tree(wanted)
        return await fetch_items(tree.values(), client=client)


def install_items(
    installer: Installer,
    fetched: list[ResolvedWantedItem],
    roles: list[str],
    interactive: bool,
    overwrite: bool,
) -> None:
    """Plan and write the fetched items, then report what happened."""
    cwd = installer.cwd
    plan = installer.plan(fetched, include_roles=roles)
    result = apply_plan(
        plan,
        cwd,
        confirm=confirm_diff if interactive else None,
        overwrite=overwrite,
    )

    for path in result.written:
        console.print(f"Wrote {path.relative_to(cwd)}", style="green")
    for path in result.skipped:
        console.print(f"Skipped {path.relative_to(cwd)} (changed locally)", style="yellow")
    if result.unchanged:
        console.print(f"{len(result.unchanged)} files already up to date", style="dim")
    print_plan_summary(plan)


def check_roles(roles: list[str]) -> None:
    for role in roles:
        if role not in OPTIONAL_ROLES:
            console.print(
                f"Error: Unknown role {role}, expected one of {', '.join(OPTIONAL_ROLES)}",
                style="red",
            )
            raise typer.Exit(1)


def print_plan_summary(plan: InstallPlan) -> None:
    if plan.dependencies or plan.dev_dependencies:
        console.print("\nInstall these dependencies:", style="bold")
        for dependency in plan.dependencies:
            console.print(f"  {dependency} [dim]({dependency.ecosystem})[/dim]")
        for dependency in plan.dev_dependencies:
            console.print(f"  {dependency} [dim]({dependency.ecosystem}, dev)[/dim]")

    if plan.env_vars:
        console.print("\nAdd these environment variables:", style="bold")
        for name, value in plan.env_vars.items():
            console.print(f"  {name}={value}")


@app.command()
def build(
    cwd: Path = typer.Option(Path("."), "--cwd", help="Registry root containing regkit.yaml"),
    no_prune: bool = typer.Option(False, "--no-prune", help="Keep unused items"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Build the registry manifest."""
    setup_logging(verbose)
    cwd = cwd.resolve()

    try:
        config = load_config(cwd)
        if config.registry is None:
            raise ConfigError(
                f"No `registry` section in {cwd / 'regkit.yaml'}",
                "Declare the registry and its items under `registry`.",
            )

        result = build_registry(config.registry, cwd, prune=not no_prune)
        written = write_outputs(result.manifest, config.registry.outputs, cwd)
    except RegkitError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    for path in written:
        console.print(f"Wrote {path.relative_to(cwd)}")
    console.print(
        f"Built [cyan]{result.manifest.name}[/cyan] with {len(result.items)} items"
        + (f" ({len(result.warnings)} warnings)" if result.warnings else ""),
        style="green",
    )


@app.command()
def add(
    items: list[str] = typer.Argument(help="Items to add, e.g. math or github/ieedan/std/math"),
    registry: list[str] | None = typer.Option(
        None, "--registry", "-r", help="Registry to add items from (repeatable)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Never prompt"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite changed files without asking"),
    with_roles: list[str] | None = typer.Option(
        None, "--with", help="Also add optional files: example, doc or test"
    ),
    cwd: Path = typer.Option(Path("."), "--cwd", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Add registry items to your project."""
    setup_logging(verbose)
    cwd = cwd.resolve()
    roles = list(dict.fromkeys(with_roles or []))
    interactive = not yes
    check_roles(roles)

    try:
        config = load_config_optional(cwd) or ProjectConfig()
        if registry:
            config = config.model_copy(update={"registries": registry})

        fetched = asyncio.run(resolve_items(items, config, cwd, roles, interactive))
        installer = Installer(
            cwd, config.paths, prompt_path=prompt_path if interactive else None
        )
        install_items(installer, fetched, roles, interactive, overwrite)
    except RegkitError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


@app.command()
def update(
    items: list[str] | None = typer.Argument(
        None, help="Items to update, every installed item when omitted"
    ),
    registry: list[str] | None = typer.Option(
        None, "--registry", "-r", help="Registry to update items from (repeatable)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Never prompt"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite changed files without asking"),
    cwd: Path = typer.Option(Path("."), "--cwd", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Update installed items from their registries, showing a diff of each change."""
    setup_logging(verbose)
    cwd = cwd.resolve()
    interactive = not yes

    try:
        config = load_config_optional(cwd) or ProjectConfig()
        if registry:
            config = config.model_copy(update={"registries": registry})

        installer = Installer(
            cwd, config.paths, prompt_path=prompt_path if interactive else None
        )
        if items:
            fetched = asyncio.run(resolve_items(items, config, cwd, [], interactive))
        else:
            fetched = asyncio.run(resolve_installed(config, cwd, installer))
        if not fetched:
            console.print("No installed items to update", style="yellow")
            return

        install_items(installer, fetched, [], interactive, overwrite)
    except RegkitError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


@app.command()
def init(
    registry: list[str] | None = typer.Option(
        None, "--registry", "-r", help="Registry to add to regkit.yaml (repeatable)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Never prompt"),
    cwd: Path = typer.Option(Path("."), "--cwd", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Create or extend regkit.yaml and add the items registries want on init."""
    setup_logging(verbose)
    cwd = cwd.resolve()
    interactive = not yes

    try:
        config = load_config_optional(cwd) or ProjectConfig()
        if registry:
            registries = list(dict.fromkeys([*config.registries, *registry]))
            config = config.model_copy(update={"registries": registries})

        installer = Installer(
            cwd, config.paths, prompt_path=prompt_path if interactive else None
        )
        if config.registries:
            fetched = asyncio.run(resolve_init_items(config, cwd, interactive))
            if fetched:
                install_items(installer, fetched, [], interactive, overwrite=False)

        config_path = save_config(config.model_copy(update={"paths": installer.paths}), cwd)
    except RegkitError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    console.print(f"Wrote {config_path.relative_to(cwd)}", style="green")


if __name__ == "__main__":
    app()
