"""
DNA Composer — CLI entrypoint.

Usage:
    dnacomposer --help
    dnacomposer modules list --source ./modules
    dnacomposer compose request.yml --source ./modules
    dnacomposer migrate preview auth 1.0.0 2.0.0 --migrations migrations.yml
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import yaml
from pydantic import ValidationError

from dnacomposer import __version__
from dnacomposer.core.config.loader import ComposerSettings, ConfigError, find_settings_file, load_settings
from dnacomposer.core.observability.logging_config import resolve_level, setup_from_environment


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)


def _settings(ctx: click.Context) -> ComposerSettings:
    """Load settings once per invocation."""
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj.get("config_path"))
        except ConfigError as e:
            _fail(str(e))
    return ctx.obj["settings"]


def _build_catalog(ctx: click.Context, extra_sources: tuple[str, ...]):
    """Catalog populated from configured sources plus ``--source`` dirs."""
    from dnacomposer.core.config.module_loader import (
        LocalModuleSource,
        ModuleSourceError,
        load_sources,
        source_from_spec,
    )
    from dnacomposer.core.services.catalog import CatalogError, ModuleCatalog

    settings = _settings(ctx)
    catalog = ModuleCatalog(latest_policy=settings.latest_policy)
    sources = [source_from_spec(s) for s in settings.sources]
    sources += [LocalModuleSource(p) for p in extra_sources]

    try:
        load_sources(sources, catalog, max_workers=settings.max_source_workers)
    except (ModuleSourceError, CatalogError) as e:
        _fail(str(e))
    return catalog


def _read_mapping(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        _fail(f"Cannot read {path}: {e}")
    if not isinstance(data, dict):
        _fail(f"Expected a mapping in {path}")
    return data


source_option = click.option(
    "--source",
    "-s",
    "sources",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Directory of module definitions (repeatable).",
)
json_option = click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")


@click.group()
@click.version_option(version=__version__, prog_name="dnacomposer")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to dna.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """DNA Composer — compose projects from versioned DNA modules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_from_environment(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Settings commands."""


@config.command("check")
@json_option
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate dna.yml."""
    from dnacomposer.core.config.loader import validate_settings

    path = ctx.obj.get("config_path") or find_settings_file()
    if path is None:
        issues = []
    else:
        issues = validate_settings(_read_mapping(Path(path)))

    if as_json:
        click.echo(json.dumps({
            "path": str(path) if path else None,
            "valid": not issues,
            "issues": [{"field": i.field, "message": i.message} for i in issues],
        }, indent=2))
        sys.exit(0 if not issues else 1)

    if path is None:
        click.echo("No dna.yml found; defaults apply.")
        return
    if not issues:
        click.secho(f"✅ {path} is valid", fg="green", bold=True)
        return
    click.secho(f"❌ {path} has errors:", fg="red", bold=True)
    for issue in issues:
        click.echo(f"   • {issue}")
    sys.exit(1)


# ── modules ─────────────────────────────────────────────────────


@cli.group()
def modules() -> None:
    """Browse the module catalog."""


def _print_modules(found: list, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(
            [m.model_dump(mode="json", include={"metadata"})["metadata"] for m in found],
            indent=2,
        ))
        return
    if not found:
        click.echo("No modules found.")
        return
    for m in found:
        flags = []
        if m.is_deprecated:
            flags.append("deprecated")
        if m.is_experimental:
            flags.append("experimental")
        suffix = f"  ({', '.join(flags)})" if flags else ""
        click.echo(f"  • {m.id}@{m.version}  [{m.metadata.category}]  {m.metadata.name}{suffix}")


@modules.command("list")
@source_option
@click.option("--category", default=None, help="Only modules in this category.")
@click.option("--framework", default=None, help="Only modules supporting this framework.")
@json_option
@click.pass_context
def modules_list(
    ctx: click.Context,
    sources: tuple[str, ...],
    category: str | None,
    framework: str | None,
    as_json: bool,
) -> None:
    """List registered modules (latest versions)."""
    catalog = _build_catalog(ctx, sources)
    found = catalog.all_modules()
    if category:
        found = [m for m in found if m.metadata.category == category]
    if framework:
        supported = {m.id for m in catalog.for_framework(framework)}
        found = [m for m in found if m.id in supported]
    _print_modules(found, as_json)


@modules.command("search")
@click.argument("query")
@source_option
@json_option
@click.pass_context
def modules_search(ctx: click.Context, query: str, sources: tuple[str, ...], as_json: bool) -> None:
    """Search modules by name, id, description or keyword."""
    catalog = _build_catalog(ctx, sources)
    _print_modules(catalog.search(query), as_json)


@modules.command("tree")
@click.argument("module_id")
@source_option
@json_option
@click.pass_context
def modules_tree(ctx: click.Context, module_id: str, sources: tuple[str, ...], as_json: bool) -> None:
    """Show the dependency tree of a module."""
    catalog = _build_catalog(ctx, sources)
    if module_id not in catalog:
        _fail(f"Module {module_id} not found")
    tree = catalog.dependency_tree(module_id)

    if as_json:
        click.echo(json.dumps(tree, indent=2))
        return

    stack: list[tuple[str, int]] = [(module_id, 0)]
    seen: set[str] = set()
    while stack:
        node, depth = stack.pop()
        marker = " (see above)" if node in seen else ""
        missing = " (missing)" if node not in tree else ""
        click.echo(f"{'  ' * depth}• {node}{marker}{missing}")
        if node in seen:
            continue
        seen.add(node)
        for dep in reversed(tree.get(node, [])):
            stack.append((dep, depth + 1))


# ── compose ─────────────────────────────────────────────────────


@cli.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
@source_option
@click.option("--preview", "mode", flag_value="preview", help="Show a preview instead of the result.")
@click.option("--optimize", "mode", flag_value="optimize", help="Suggest redundant modules to drop.")
@json_option
@click.pass_context
def compose(
    ctx: click.Context,
    request_file: str,
    sources: tuple[str, ...],
    mode: str | None,
    as_json: bool,
) -> None:
    """Compose the modules named in REQUEST_FILE."""
    from dnacomposer.core.engine.composer import CompositionEngine
    from dnacomposer.core.models.composition import Composition

    try:
        composition = Composition.model_validate(_read_mapping(Path(request_file)))
    except ValidationError as e:
        _fail(f"Invalid composition request: {e}")

    engine = CompositionEngine(_build_catalog(ctx, sources), settings=_settings(ctx))

    if mode == "preview":
        preview = engine.preview(composition)
        if as_json:
            click.echo(preview.model_dump_json(indent=2))
        else:
            click.secho("📋 Composition preview", fg="cyan", bold=True)
            click.echo(f"   Valid: {preview.valid}")
            click.echo(f"   Modules: {', '.join(m.id for m in preview.modules) or '-'}")
            click.echo(f"   Estimated files: {preview.estimated_files}")
            click.echo(f"   Complexity: {preview.estimated_complexity}")
            click.echo(f"   Max dependency depth: {preview.max_dependency_depth}")
        sys.exit(0 if preview.valid else 1)

    if mode == "optimize":
        report = engine.optimize(composition)
        if as_json:
            click.echo(report.model_dump_json(indent=2))
            return
        click.echo(f"Complexity: {report.original_complexity} → {report.optimized_complexity}")
        for s in report.suggestions or ["No redundant modules found."]:
            click.echo(f"   • {s}")
        return

    result = engine.compose_dna(composition)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Composition is valid", fg="green", bold=True)
        click.echo(f"   Build order: {' → '.join(result.dependency_order)}")
        click.echo(f"   Complexity: {result.performance.complexity}")
    else:
        click.secho("❌ Composition errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • [{err.code}] {err.message}")

    if result.warnings and not ctx.obj.get("quiet"):
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • [{warn.code}] {warn.message}")

    if not result.valid:
        sys.exit(1)


# ── migrate ─────────────────────────────────────────────────────


def _planner(ctx: click.Context, migrations_file: str | None):
    from dnacomposer.core.config.module_loader import ModuleSourceError, load_migrations
    from dnacomposer.core.services.migration.planner import MigrationPlanner

    planner = MigrationPlanner()
    path = migrations_file or _settings(ctx).migrations
    if path:
        try:
            planner.register_all(load_migrations(Path(path)))
        except ModuleSourceError as e:
            _fail(str(e))
    return planner


migrations_option = click.option(
    "--migrations",
    "-m",
    "migrations_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Migration registry file (default: from dna.yml).",
)


@cli.group()
def migrate() -> None:
    """Plan and run module upgrades."""


@migrate.command("preview")
@click.argument("module_id")
@click.argument("from_version")
@click.argument("to_version")
@migrations_option
@json_option
@click.pass_context
def migrate_preview(
    ctx: click.Context,
    module_id: str,
    from_version: str,
    to_version: str,
    migrations_file: str | None,
    as_json: bool,
) -> None:
    """Show the steps upgrading MODULE_ID from FROM_VERSION to TO_VERSION."""
    preview = _planner(ctx, migrations_file).get_migration_preview(module_id, from_version, to_version)

    if as_json:
        click.echo(preview.model_dump_json(indent=2))
        return

    if not preview.steps:
        click.echo(f"No migration needed for {module_id} {from_version} → {to_version}.")
        return

    click.secho(f"📋 {module_id}: {from_version} → {to_version}", fg="cyan", bold=True)
    for step in preview.steps:
        tags = []
        if step.breaking:
            tags.append("breaking")
        tags.append("automated" if step.automated else "manual")
        click.echo(f"   • {step.version}  {step.description}  ({', '.join(tags)})")
    click.echo(f"   Breaking changes: {preview.breaking_changes}")
    click.echo(f"   Manual steps: {preview.manual_steps}")
    click.echo(f"   Estimated time: {preview.estimated_time}")


@migrate.command("run")
@click.argument("module_id")
@click.argument("from_version")
@click.argument("to_version")
@click.option(
    "--project",
    "project_path",
    type=click.Path(file_okay=False),
    default=".",
    help="Project directory to migrate.",
)
@click.option("--backup", "backup_path", type=click.Path(), default=None, help="Back up here first.")
@click.option("--dry-run", is_flag=True, help="Simulate every step.")
@migrations_option
@json_option
@click.pass_context
def migrate_run(
    ctx: click.Context,
    module_id: str,
    from_version: str,
    to_version: str,
    project_path: str,
    backup_path: str | None,
    dry_run: bool,
    migrations_file: str | None,
    as_json: bool,
) -> None:
    """Upgrade MODULE_ID in a project from FROM_VERSION to TO_VERSION."""
    from dnacomposer.adapters.base import BackupError
    from dnacomposer.adapters.shell.command import ShellScriptRunner
    from dnacomposer.adapters.shell.filesystem import DirectoryBackupService
    from dnacomposer.core.models.migration import MigrationContext
    from dnacomposer.core.services.migration.executor import MigrationExecutor

    settings = _settings(ctx)
    planner = _planner(ctx, migrations_file)
    context = MigrationContext(
        module_id=module_id,
        from_version=from_version,
        to_version=to_version,
        project_path=str(Path(project_path).resolve()),
        dry_run=dry_run,
        backup_path=str(Path(backup_path).resolve()) if backup_path else None,
    )

    check = planner.validate_migration(context)
    if not check.valid:
        _fail("; ".join(check.issues))

    executor = MigrationExecutor(
        planner,
        ShellScriptRunner(),
        DirectoryBackupService(),
        script_timeout_s=settings.script_timeout_s,
        backup_timeout_s=settings.backup_timeout_s,
    )
    try:
        result = executor.execute(context)
    except BackupError as e:
        _fail(f"Backup failed, nothing was changed: {e}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.success else 1)

    for sr in result.steps:
        marker = "✓" if sr.success else "✗"
        click.echo(f"   {marker} {sr.step.version}  {sr.step.description}")
        if sr.output and ctx.obj.get("verbose"):
            click.echo(f"       {sr.output}")

    for warn in check.warnings + result.warnings:
        click.secho(f"   ⚠️  {warn}", fg="yellow")

    if result.success:
        click.secho(f"✅ {module_id} is at {result.version_reached}", fg="green", bold=True)
        return

    click.secho(f"❌ Migration failed; {module_id} stays at {result.version_reached}", fg="red", bold=True)
    for err in result.errors:
        click.echo(f"   • {err}")
    if result.rolled_back:
        click.echo("   Project restored from backup.")
    sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
