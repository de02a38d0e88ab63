"""CLI commands for installing plans and reconciling plants."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml

from .lifecycle import (
    InvalidTransitionError,
    RemovalNotAllowedError,
    assign_planter,
    ensure_removable,
    parse_status,
    removable_plants,
    transition,
    unassign_planter,
)
from .memory.schema import Plant
from .memory.store import ForestStore, PersistenceError
from .models import ChatClient, OfflineChatClient, OpenAICompatibleClient
from .plans import PlanFormatError, install_plan
from .reconcile import (
    ForumRouter,
    PlanNotInstalledError,
    PlanReconciler,
    ReconcileError,
    ReconcileResult,
)
from .reconcile.context import ReconciliationForum
from .reconcile.forums import AgentForum, TemplateForum
from .reconcile.router import DEFAULT_FORUM, canonical_forum_name

APP_HELP = "git-forest: reconcile installed plans into tracked plants."
DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "persistence": {
        "db_path": ".forest/forest.sqlite",
    },
    "reconcile": {
        "forum": "file",
    },
    "llm": {
        "provider": "mock",
        "model": "gpt-4o-mini",
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "temperature": 0,
        "timeout": 60,
    },
}

CONFIG_OPTION_HELP = "Path to the forest configuration file."

app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _open_store(config_path: Path) -> ForestStore:
    config_data = load_config(config_path)
    try:
        return ForestStore.from_config(config_data, base_dir=config_path.resolve().parent)
    except PersistenceError as error:
        typer.echo(f"Failed to open forest store: {error}")
        raise typer.Exit(code=1) from error


def _build_client(config: Dict[str, Any]) -> ChatClient:
    """Select either the OpenAI-compatible client or the offline mock."""
    llm_cfg = config.get("llm") or {}
    provider = str(llm_cfg.get("provider") or "mock").strip().lower()
    model_name = str(llm_cfg.get("model") or "gpt-4o-mini").strip()

    temperature = 0.0
    temperature_value = llm_cfg.get("temperature")
    if isinstance(temperature_value, (int, float)) and temperature_value >= 0:
        temperature = float(temperature_value)

    if provider == "mock":
        return OfflineChatClient(temperature=temperature)
    if provider != "openai":
        typer.echo(f"Unknown llm.provider '{provider}'. Expected: mock|openai")
        raise typer.Exit(code=1)

    client_kwargs: Dict[str, Any] = {"model": model_name, "temperature": temperature}
    timeout_value = llm_cfg.get("timeout")
    if isinstance(timeout_value, (int, float)) and timeout_value > 0:
        client_kwargs["timeout"] = float(timeout_value)
    base_url_value = llm_cfg.get("base_url")
    if isinstance(base_url_value, str) and base_url_value.strip():
        client_kwargs["base_url"] = base_url_value.strip()
    api_key_env_value = llm_cfg.get("api_key_env")
    if isinstance(api_key_env_value, str) and api_key_env_value.strip():
        client_kwargs["api_key_env"] = api_key_env_value.strip()
    try:
        return OpenAICompatibleClient(**client_kwargs)
    except ValueError as error:
        typer.echo(f"Failed to initialise chat client: {error}")
        raise typer.Exit(code=1) from error


def _build_router(config: Dict[str, Any], forum_override: Optional[str] = None) -> ForumRouter:
    """Register the file forum, plus the ai forum only when it will be selected."""
    reconcile_cfg = config.get("reconcile") or {}
    default_forum = str(reconcile_cfg.get("forum") or DEFAULT_FORUM)
    selected = canonical_forum_name(forum_override) or canonical_forum_name(default_forum)

    forums: Dict[str, ReconciliationForum] = {"file": TemplateForum()}
    if selected == "ai":
        llm_cfg = config.get("llm") or {}
        client = _build_client(config)
        model_value = llm_cfg.get("model")
        forums["ai"] = AgentForum(
            client,
            model=model_value.strip() if isinstance(model_value, str) and model_value.strip() else None,
            temperature=client.temperature,
        )
    return ForumRouter(forums, default_forum=default_forum)


def _render_reconcile(result: ReconcileResult) -> None:
    prefix = "[dry-run] " if result.dry_run else ""
    typer.echo(
        f"{prefix}Reconciled plan {result.plan_id}: "
        f"{result.plants_created} created, {result.plants_updated} updated"
    )
    typer.echo(f"Forum: {result.forum} ({result.summary or 'no summary'})")
    for key in sorted(result.metadata):
        if key.startswith("planner.") and key.endswith(".status"):
            planner_id = key[len("planner.") : -len(".status")]
            status = result.metadata[key]
            error = result.metadata.get(f"planner.{planner_id}.error")
            line = f"- planner {planner_id}: {status}"
            if error:
                line += f" ({error})"
            typer.echo(line)


def _render_plant(plant: Plant) -> str:
    planters = ", ".join(plant.assigned_planters) or "-"
    return f"{plant.key} [{plant.status.value}] {plant.title} (planters: {planters})"


def _require_plant(store: ForestStore, key: str) -> Plant:
    plant = store.get_plant(key.strip())
    if plant is None:
        typer.echo(f"Plant '{key}' not found.")
        raise typer.Exit(code=2)
    return plant


def _save_plant(store: ForestStore, plant: Plant) -> None:
    try:
        store.update_plant(plant)
    except PersistenceError as error:
        typer.echo(f"Failed to save plant '{plant.key}': {error}")
        raise typer.Exit(code=1) from error


def _delete_plant(store: ForestStore, plant: Plant) -> None:
    try:
        store.delete_plant(plant.key)
    except PersistenceError as error:
        typer.echo(f"Failed to remove plant '{plant.key}': {error}")
        raise typer.Exit(code=1) from error


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Write the default configuration if missing and create the store."""
    config_path = Path(config)
    if config_path.exists():
        typer.echo(f"Using existing configuration at {config_path}")
    else:
        _write_config(config_path, _copy_config_template())
        typer.echo(f"Wrote default configuration to {config_path}")

    with _open_store(config_path) as store:
        typer.echo(f"Forest store ready at {store.db_path}")


@app.command("install-plan")
def install_plan_command(
    source: Path = typer.Argument(..., help="Path to a plan YAML file."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Install (or re-install) a plan from a YAML file."""
    with _open_store(Path(config)) as store:
        try:
            plan = install_plan(store, source)
        except FileNotFoundError as error:
            typer.echo(str(error))
            raise typer.Exit(code=2) from error
        except PlanFormatError as error:
            typer.echo(f"Invalid plan: {error}")
            raise typer.Exit(code=1) from error

    typer.echo(
        f"Installed plan {plan.id} "
        f"({len(plan.plant_templates)} templates, {len(plan.planners)} planners, "
        f"{len(plan.planters)} planters)"
    )


@app.command()
def plans(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """List installed plans."""
    with _open_store(Path(config)) as store:
        installed = store.list_plans()

    if not installed:
        typer.echo("No plans installed.")
        return
    for plan in installed:
        version = f" v{plan.version}" if plan.version else ""
        typer.echo(f"- {plan.id}{version} {plan.name}".rstrip())


@app.command()
def reconcile(
    plan_id: str = typer.Argument(..., help="Identifier of an installed plan."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Report what would change without writing.",
    ),
    forum: Optional[str] = typer.Option(
        None,
        "--forum",
        "-f",
        help="Forum override (file|ai). Defaults to reconcile.forum in the config.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Reconcile a plan's desired plants into the store."""
    config_path = Path(config)
    config_data = load_config(config_path)
    router = _build_router(config_data, forum)

    with _open_store(config_path) as store:
        reconciler = PlanReconciler(store, store, router)
        try:
            result = reconciler.reconcile(plan_id, dry_run=dry_run, forum=forum)
        except PlanNotInstalledError as error:
            typer.echo(f"Plan '{error.plan_id}' is not installed. Run 'install-plan' first.")
            raise typer.Exit(code=3) from error
        except (ReconcileError, PersistenceError) as error:
            typer.echo(f"Reconcile failed: {error}")
            raise typer.Exit(code=1) from error

    _render_reconcile(result)


@app.command("plants")
def list_plants(
    plan: Optional[str] = typer.Option(None, "--plan", "-p", help="Only list plants of this plan."),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Only list plants with this status."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """List tracked plants."""
    statuses = None
    if status:
        try:
            statuses = [parse_status(status)]
        except ValueError as error:
            raise typer.BadParameter(str(error), param_hint="--status") from error

    with _open_store(Path(config)) as store:
        plants = store.list_plants(plan_id=plan.strip() if plan else None, statuses=statuses)

    if not plants:
        typer.echo("No plants found.")
        return
    for plant in plants:
        typer.echo(f"- {_render_plant(plant)}")


@app.command()
def assign(
    key: str = typer.Argument(..., help="Plant key, e.g. 'plan:slug'."),
    planter: str = typer.Argument(..., help="Planter identifier to assign."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the result without writing."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Assign a planter to a plant."""
    with _open_store(Path(config)) as store:
        updated = assign_planter(_require_plant(store, key), planter)
        if not dry_run:
            _save_plant(store, updated)
    prefix = "[dry-run] " if dry_run else ""
    typer.echo(f"{prefix}{_render_plant(updated)}")


@app.command()
def unassign(
    key: str = typer.Argument(..., help="Plant key, e.g. 'plan:slug'."),
    planter: str = typer.Argument(..., help="Planter identifier to remove."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the result without writing."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Remove a planter from a plant."""
    with _open_store(Path(config)) as store:
        updated = unassign_planter(_require_plant(store, key), planter)
        if not dry_run:
            _save_plant(store, updated)
    prefix = "[dry-run] " if dry_run else ""
    typer.echo(f"{prefix}{_render_plant(updated)}")


@app.command("transition")
def transition_command(
    key: str = typer.Argument(..., help="Plant key, e.g. 'plan:slug'."),
    status: str = typer.Argument(..., help="Target lifecycle status."),
    force: bool = typer.Option(False, "--force", help="Allow skipping or reverting lifecycle steps."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the result without writing."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Move a plant to another lifecycle status."""
    try:
        target = parse_status(status)
    except ValueError as error:
        raise typer.BadParameter(str(error), param_hint="STATUS") from error

    with _open_store(Path(config)) as store:
        try:
            updated = transition(_require_plant(store, key), target, force=force)
        except InvalidTransitionError as error:
            typer.echo(f"{error} Use --force to override.")
            raise typer.Exit(code=1) from error
        if not dry_run:
            _save_plant(store, updated)
    prefix = "[dry-run] " if dry_run else ""
    typer.echo(f"{prefix}{_render_plant(updated)}")


@app.command()
def remove(
    key: str = typer.Argument(..., help="Plant key, e.g. 'plan:slug'."),
    force: bool = typer.Option(False, "--force", help="Remove even when the plant is not archived."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed without writing."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Remove an archived plant."""
    with _open_store(Path(config)) as store:
        plant = _require_plant(store, key)
        try:
            ensure_removable(plant, force=force)
        except RemovalNotAllowedError as error:
            typer.echo(str(error))
            raise typer.Exit(code=1) from error
        if not dry_run:
            _delete_plant(store, plant)
    prefix = "[dry-run] " if dry_run else ""
    typer.echo(f"{prefix}Removed {plant.key}")


@app.command("remove-plants")
def remove_plants(
    plan_id: str = typer.Argument(..., help="Remove every plant of this plan."),
    force: bool = typer.Option(False, "--force", help="Remove even when plants are not archived."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed without writing."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Remove all plants of a plan; nothing is removed unless every plant may be."""
    plan_key_id = plan_id.strip()
    if not plan_key_id:
        raise typer.BadParameter("Plan ID is required.", param_hint="PLAN_ID")

    with _open_store(Path(config)) as store:
        try:
            plants = removable_plants(store.list_plants(plan_id=plan_key_id), force=force)
        except RemovalNotAllowedError as error:
            typer.echo(str(error))
            raise typer.Exit(code=1) from error
        if not dry_run:
            for plant in plants:
                _delete_plant(store, plant)

    prefix = "[dry-run] " if dry_run else ""
    typer.echo(f"{prefix}Removed {len(plants)} plants from plan {plan_key_id}")
    for plant in plants:
        typer.echo(f"- {plant.key}")


if __name__ == "__main__":
    app()
