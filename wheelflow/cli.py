#!/usr/bin/env python3
# wheelflow/cli.py

from pathlib import Path
from typing import Optional

import typer

from wheelflow.core.config import Settings
from wheelflow.graph.project import create_new_project
from wheelflow.graph.tree import get_component_tree
from wheelflow.store.component_store import ComponentStore
from wheelflow.store.vcs import GitVersionControl, NullVersionControl
from wheelflow.utils.io import write_json
from wheelflow.utils.logger import init_logger, level_from_name
from wheelflow.validation.validator import GraphValidator

app = typer.Typer(help="wheelflow CLI - manage and validate workflow projects")


def _open_store(project: Path, settings: Settings) -> ComponentStore:
    return ComponentStore(
        project,
        read_retries=settings.read_retries,
        read_retry_interval=settings.read_retry_interval,
    )


@app.command()
def new(
    path: Path = typer.Option(..., "--path", "-p", help="Directory of the new project (.wheel is appended)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Project name (default: basename of path)"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Project description"),
    user: str = typer.Option("wheelflow", "--user", help="git user.name"),
    mail: str = typer.Option("wheelflow@localhost", "--mail", help="git user.email"),
    no_git: bool = typer.Option(False, "--no-git", help="Do not create a git repository"),
):
    """
    Create an empty project with a root workflow.
    """
    vcs = NullVersionControl() if no_git else GitVersionControl()
    project_name = name or path.name.replace(".wheel", "")
    root = create_new_project(path, project_name, description, user=user, mail=mail, vcs=vcs)
    print(f"[ok] created project {root}")


@app.command()
def validate(
    project: Path = typer.Option(..., "--project", "-i", exists=True, file_okay=False, help="Project root directory"),
    start: Optional[str] = typer.Option(None, "--start", help="Component ID to start from (default: root workflow)"),
    config_dir: Optional[Path] = typer.Option(None, "--config-dir", help="Directory holding remotehost.json / jobScheduler.json"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write the report as JSON to this path"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Also write the log to wheel.log in this directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug log"),
):
    """
    Validate every enabled component below the start component.
    Exit code is 1 when anything is reported.
    """
    overrides = {"config_dir": config_dir, "log_dir": log_dir}
    settings = Settings.from_env(**{k: v for k, v in overrides.items() if v is not None})
    init_logger(level=level_from_name("DEBUG" if verbose else settings.log_level), log_dir=settings.log_dir)

    store = _open_store(project, settings)
    validator = GraphValidator(store, hosts=settings.load_remote_hosts(), schedulers=settings.load_job_schedulers())
    result = validator.validate_components(start)

    if report is not None:
        write_json(report, {"project": str(project), "start": start, "report": result}, indent=2)
        print(f"[ok] wrote report to {report}")

    if not result:
        print("[ok] no problem found")
        return

    print("Detected issues:")
    for entry in result:
        for line in str(entry["error"]).splitlines():
            print(f"- {entry['name']} ({entry['ID']}): {line}")
    raise typer.Exit(code=1)


@app.command()
def tree(
    project: Path = typer.Option(..., "--project", "-i", exists=True, file_okay=False, help="Project root directory"),
    show_id: bool = typer.Option(False, "--id", help="Print component IDs"),
):
    """
    Print the component tree.
    """
    store = _open_store(project, Settings.from_env())
    root = get_component_tree(store)
    if root is None:
        raise typer.BadParameter(f"{project} has no root component")

    def _print(node, depth: int) -> None:
        label = f"{node.get('name')} [{node.get('type')}]"
        if node.get("disable"):
            label += " (disabled)"
        if show_id:
            label += f" {node.get('ID')}"
        print("  " * depth + label)
        for child in node.get("children", []):
            _print(child, depth + 1)

    _print(root, 0)


if __name__ == "__main__":
    app()
