"""
WingetWizard CLI

Thin command-line consumer of the orchestration core.

Usage:
    wingetwizard list [--source winget] [--json]
    wingetwizard updates [--json]
    wingetwizard search <term> [--limit 50] [--exact] [--json]
    wingetwizard show <id> [--json]
    wingetwizard install|upgrade|uninstall|repair <id>... [--json]
    wingetwizard upgrade-all [--json]
    wingetwizard research [<id>...] [--json]
    wingetwizard models [--provider bedrock] [--region us-east-1] [--refresh] [--json]
    wingetwizard doctor [--json]
"""

from __future__ import annotations

import json as json_module
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer

from .ai.discovery import ModelDiscoveryCache, models_by_provider, recommended_models
from .ai.pipeline import AIRecommendationPipeline
from .ai.settings import AIServicesSettings, validate_ai_configuration
from .config import WizardConfig
from .credentials import (
    CredentialStore,
    EnvCredentialStore,
    ProviderKind,
    provider_readiness,
    resolve_credential,
)
from .errors import DiscoveryError, ProcessLaunchFailure, ProcessTimeout, ValidationError
from .models import BatchStatus, LifecycleKind
from .reporting import ConsoleReportWriter, InMemoryReportWriter
from .store.inventory import InventoryStore
from .winget.service import PackageOrchestrator

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="wingetwizard",
    help="WingetWizard - winget package management with AI upgrade recommendations",
    no_args_is_help=True,
)


def get_config() -> WizardConfig:
    """Load configuration."""
    return WizardConfig.load()


def get_credential_store() -> CredentialStore:
    """Credential store backed by environment variables."""
    return EnvCredentialStore()


def get_ai_settings(config: WizardConfig) -> AIServicesSettings:
    return AIServicesSettings.load(config.ai_settings_file)


def get_orchestrator(config: WizardConfig, inventory: Optional[InventoryStore] = None) -> PackageOrchestrator:
    return PackageOrchestrator(config, inventory=inventory)


def output_json(data) -> None:
    """Output data as JSON."""
    typer.echo(json_module.dumps(data, indent=2, default=str))


def output_error(message: str) -> None:
    """Output error message."""
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def output_success(message: str) -> None:
    """Output success message."""
    typer.secho(message, fg=typer.colors.GREEN)


def output_warning(message: str) -> None:
    """Output warning message."""
    typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn fatal core errors into exit code 1."""
    try:
        yield
    except (ProcessLaunchFailure, ValidationError, ProcessTimeout) as e:
        output_error(str(e))
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """WingetWizard command-line interface."""
    config = get_config()
    level = "DEBUG" if verbose or config.verbose else config.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# =============================================================================
# Listing Commands
# =============================================================================

def _print_records(records, empty_message: str) -> None:
    if not records:
        typer.echo(empty_message)
        return
    for r in records:
        line = f"  {r.name:<40} {r.id:<40} {r.installed_version:<16}"
        if r.available_version:
            line += f" -> {r.available_version}"
        typer.echo(line.rstrip())


@app.command("list")
def list_command(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="winget, msstore or all"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List installed packages."""
    with handle_errors():
        records = get_orchestrator(get_config()).list_installed(source)

    if json:
        output_json({"packages": [r.to_dict() for r in records]})
    else:
        typer.echo(f"Found {len(records)} installed package(s):")
        _print_records(records, "No packages found.")


@app.command("updates")
def updates_command(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="winget, msstore or all"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List packages with available upgrades."""
    with handle_errors():
        records = get_orchestrator(get_config()).check_for_updates(source)

    if json:
        output_json({"updates": [r.to_dict() for r in records]})
    else:
        typer.echo(f"Found {len(records)} available upgrade(s):")
        _print_records(records, "Everything is up to date.")


@app.command("search")
def search_command(
    term: str = typer.Argument(..., help="Search term"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="winget, msstore or all"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum results (1-1000)"),
    exact: bool = typer.Option(False, "--exact", "-e", help="Exact match"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Search the package catalog."""
    with handle_errors():
        results = get_orchestrator(get_config()).search(term, source=source, limit=limit, exact=exact)

    if json:
        output_json({"results": [r.to_dict() for r in results]})
        return

    if not results:
        typer.echo(f"No packages found matching '{term}'.")
        return
    typer.echo(f"Found {len(results)} package(s):")
    for r in results:
        typer.echo(f"  {r.name:<40} {r.id:<40} {r.version:<16} {r.source}".rstrip())


@app.command("show")
def show_command(
    package_id: str = typer.Argument(..., help="Package id, e.g. Git.Git"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show package details."""
    with handle_errors():
        details = get_orchestrator(get_config()).get_package_details(package_id)

    if details is None:
        output_error(f"Package not found: {package_id}")
        raise typer.Exit(1)

    if json:
        output_json(details.to_dict())
        return

    typer.echo(f"{details.name} [{details.id}]")
    for label, value in (
        ("Version", details.version),
        ("Publisher", details.publisher),
        ("Homepage", details.homepage),
        ("License", details.license),
        ("Description", details.description),
    ):
        if value:
            typer.echo(f"  {label}: {value}")
    if details.tags:
        typer.echo(f"  Tags: {', '.join(details.tags)}")


# =============================================================================
# Lifecycle Commands
# =============================================================================

def _run_batch(kind: LifecycleKind, package_ids: List[str], json: bool) -> None:
    orchestrator = get_orchestrator(get_config())
    progress = None if json else typer.echo

    with handle_errors():
        batch = orchestrator.run_batch(kind, package_ids, progress=progress)

    if json:
        output_json(batch.to_dict())
    else:
        for item in batch.items:
            if item.success:
                output_success(f"  ✓ {item.package_id}")
            else:
                typer.secho(f"  ✗ {item.package_id} ({item.outcome.value})", fg=typer.colors.RED)
                if item.message:
                    typer.echo(f"    {item.message.splitlines()[-1]}")
        typer.echo(
            f"{batch.succeeded} succeeded, {batch.failed} failed, {batch.cancelled} cancelled"
        )

    if batch.status in (BatchStatus.FAILED, BatchStatus.PARTIAL):
        raise typer.Exit(2)


@app.command("install")
def install_command(
    package_ids: List[str] = typer.Argument(..., help="Package ids"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Install packages, one at a time."""
    _run_batch(LifecycleKind.INSTALL, package_ids, json)


@app.command("upgrade")
def upgrade_command(
    package_ids: List[str] = typer.Argument(..., help="Package ids"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Upgrade packages, one at a time."""
    _run_batch(LifecycleKind.UPGRADE, package_ids, json)


@app.command("uninstall")
def uninstall_command(
    package_ids: List[str] = typer.Argument(..., help="Package ids"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Uninstall packages, one at a time."""
    _run_batch(LifecycleKind.UNINSTALL, package_ids, json)


@app.command("repair")
def repair_command(
    package_ids: List[str] = typer.Argument(..., help="Package ids"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Repair packages, one at a time."""
    _run_batch(LifecycleKind.REPAIR, package_ids, json)


@app.command("upgrade-all")
def upgrade_all_command(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Upgrade every package with an available update."""
    with handle_errors():
        result = get_orchestrator(get_config()).upgrade_all()

    if json:
        output_json(result.to_dict())
    elif result.success:
        output_success("All packages upgraded.")
    else:
        output_error(f"Upgrade failed ({result.outcome.value})")
        if result.message:
            typer.echo(result.message)

    if not result.success:
        raise typer.Exit(2)


# =============================================================================
# AI Commands
# =============================================================================

def _resolve_all(store: CredentialStore, settings: AIServicesSettings):
    return {
        kind.value: resolve_credential(store, kind, default_region=settings.aws_region)
        for kind in ProviderKind
    }


@app.command("research")
def research_command(
    package_ids: Optional[List[str]] = typer.Argument(None, help="Package ids (default: all upgradable)"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Check for updates and generate AI upgrade recommendations."""
    config = get_config()
    settings = get_ai_settings(config)
    store = get_credential_store()

    report = validate_ai_configuration(settings, _resolve_all(store, settings))
    if not report.is_valid:
        for error in report.errors:
            output_error(error)
        raise typer.Exit(1)

    inventory = InventoryStore()
    with handle_errors():
        get_orchestrator(config, inventory=inventory).check_for_updates()

    records = inventory.select(package_ids) if package_ids else inventory.snapshot()
    if not records:
        typer.echo("Nothing to research.")
        return

    writer = InMemoryReportWriter() if json else ConsoleReportWriter(echo=typer.echo)
    with handle_errors():
        pipeline = AIRecommendationPipeline.from_settings(
            settings, store, inventory=inventory, report_writer=writer
        )
    result = pipeline.run(records, progress=None if json else typer.echo)

    if json:
        output_json(result.to_dict())
    else:
        typer.echo(f"{result.succeeded} succeeded, {result.failed} failed")


@app.command("models")
def models_command(
    provider: str = typer.Option("bedrock", "--provider", "-p", help="bedrock or anthropic"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region (bedrock)"),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached results"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List text-capable models for a provider."""
    config = get_config()
    settings = get_ai_settings(config)
    store = get_credential_store()

    try:
        kind = ProviderKind(provider)
    except ValueError:
        output_error(f"Unknown provider: {provider}")
        raise typer.Exit(1)

    credential = _resolve_all(store, settings)[kind.value]
    if region:
        credential = credential.model_copy(update={"region": region})

    try:
        cache = ModelDiscoveryCache(credential, ttl_seconds=settings.discovery_ttl_hours * 3600)
        if not cache.test_connection():
            output_error(f"Cannot connect to {kind.value} with the configured credentials")
            raise typer.Exit(1)
        models = cache.list_text_capable_models(force_refresh=refresh)
    except DiscoveryError as e:
        output_error(str(e))
        raise typer.Exit(1)

    recommended = recommended_models(models)
    if json:
        output_json({
            "models": [m.to_dict() for m in models],
            "recommended": {k: (v.to_dict() if v else None) for k, v in recommended.items()},
        })
        return

    for provider_name, group in models_by_provider(models).items():
        typer.echo(f"{provider_name}:")
        for m in group:
            typer.echo(f"  {m.model_name:<40} {m.model_id}")
    for category, model in recommended.items():
        if model:
            typer.echo(f"Recommended ({category.replace('_', ' ')}): {model.model_id}")


@app.command("doctor")
def doctor_command(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Check winget availability and AI provider configuration."""
    config = get_config()
    settings = get_ai_settings(config)
    credentials = _resolve_all(get_credential_store(), settings)

    report = validate_ai_configuration(settings, credentials)
    winget_ok = get_orchestrator(config).runner.is_available()
    if not winget_ok:
        report.errors.insert(0, f"winget is not available ({config.winget_path})")

    providers = {
        kind: {"ready": r.ready, "missing": r.missing, "warnings": r.warnings}
        for kind, r in ((k, provider_readiness(c)) for k, c in credentials.items())
    }

    if json:
        output_json({"winget": winget_ok, "providers": providers, **report.to_dict()})
    else:
        typer.echo(f"winget: {'ok' if winget_ok else 'missing'}")
        for kind, info in providers.items():
            state = "ready" if info["ready"] else f"missing {', '.join(info['missing'])}"
            typer.echo(f"{kind}: {state}")
        for warning in report.warnings:
            output_warning(warning)
        for error in report.errors:
            output_error(error)
        if report.is_valid:
            output_success("Configuration OK")

    if not report.is_valid:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
