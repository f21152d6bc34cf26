"""
Command line entry point for the grant agent orchestrator.
Runs catalog workflows and renders their progress with Rich.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.text import Text
from rich.align import Align
from rich import box

from grant_agent_orchestrator.catalog import WORKFLOW_TEMPLATES, get_workflow
from grant_agent_orchestrator.config import Config
from grant_agent_orchestrator.models import TaskStatus, WorkflowProgress, WorkflowResult
from grant_agent_orchestrator.system import GrantAgentSystem

# Initialize Rich console and Typer app
console = Console()
app = typer.Typer(
    name="grant-agents",
    help="Grant application agent orchestrator",
    add_completion=False,
    rich_markup_mode="rich"
)

STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
}


def create_header() -> Panel:
    header_text = Text.assemble(
        ("Grant Agent Orchestrator", "bold white"),
        ("\nAnalyzer · Writer · Reviewer · Researcher · Strategist · Optimizer", "dim white")
    )
    return Panel(
        Align.center(header_text),
        box=box.DOUBLE,
        border_style="cyan",
        padding=(1, 2)
    )


def load_system(config: str, verbose: bool) -> GrantAgentSystem:
    """Build the system from a config file, or from defaults when the file is missing."""
    if Path(config).exists():
        system = GrantAgentSystem(config_path=config)
    else:
        console.print(f"[yellow]Configuration file not found: {config}; using defaults.[/yellow]")
        system = GrantAgentSystem(config=Config.default())

    if verbose:
        system.logging_manager.update_log_level("DEBUG")
    return system


def show_workflows() -> None:
    table = Table(title="Workflows", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Id", style="white")
    table.add_column("Name", style="green")
    table.add_column("Stages", style="yellow", justify="right")
    table.add_column("Tasks", style="magenta", justify="right")

    for key, workflow in WORKFLOW_TEMPLATES.items():
        tasks = sum(len(stage.tasks) for stage in workflow.stages)
        table.add_row(key, workflow.id, workflow.name, str(len(workflow.stages)), str(tasks))

    console.print(table)


def show_result(system: GrantAgentSystem, result: WorkflowResult) -> None:
    """Render the tasks of a finished workflow and the orchestrator metrics."""
    border = "green" if result.succeeded else "red"
    summary = (
        f"[bold]{result.name}[/bold]: {result.status.value}\n"
        f"Stages completed: {result.stages_completed}\n"
        f"Tasks: {len(result.task_ids)} (failed: {len(result.failed_task_ids)})"
    )
    if result.error:
        summary += f"\n[red]{result.error_kind}: {result.error}[/red]"
    console.print(Panel(summary, title="[bold]Workflow result[/bold]", border_style=border))

    tasks_table = Table(title="Tasks", box=box.SIMPLE)
    tasks_table.add_column("Task", style="cyan")
    tasks_table.add_column("Agent", style="white")
    tasks_table.add_column("Description", style="white")
    tasks_table.add_column("Status")

    state = system.orchestrator.get_state()
    wanted = set(result.task_ids)
    for task in state.task_queue:
        if task.id not in wanted:
            continue
        style = STATUS_STYLES[task.status]
        tasks_table.add_row(task.id, task.assigned_to.value, task.description, f"[{style}]{task.status.value}[/{style}]")
    console.print(tasks_table)

    metrics = system.orchestrator.get_metrics()
    metrics_table = Table(title="Metrics", box=box.ROUNDED)
    metrics_table.add_column("Metric", style="cyan")
    metrics_table.add_column("Value", style="white")
    metrics_table.add_row("Total tasks", str(metrics["total_tasks"]))
    metrics_table.add_row("Completed", f"[green]{metrics['completed_tasks']}[/green]")
    metrics_table.add_row("Failed", f"[red]{metrics['failed_tasks']}[/red]")
    metrics_table.add_row("Retried", str(metrics["retried_tasks"]))
    metrics_table.add_row("Avg duration", f"{metrics['avg_task_duration']:.0f} ms")
    console.print(metrics_table)


async def run_with_progress(system: GrantAgentSystem, workflow_id: str, context: dict) -> WorkflowResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True
    ) as progress:
        bar = progress.add_task("Starting...", total=100)

        def on_progress(update: WorkflowProgress) -> None:
            progress.update(bar, description=update.stage, completed=update.progress)

        result = await system.run_workflow(workflow_id, context, on_progress=on_progress)
        progress.update(bar, completed=100)

    system.orchestrator.stop()
    await system.orchestrator.wait_idle()
    return result


@app.command()
def run(
    workflow_id: str = typer.Argument(..., help="Workflow key or id, e.g. COMPLETE_APPLICATION"),
    context: Optional[str] = typer.Option(
        None,
        "--context",
        help="JSON object injected into every task of the workflow"
    ),
    config: str = typer.Option(
        "config.yaml",
        "--config",
        "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
):
    """Run a workflow from the catalog."""
    if get_workflow(workflow_id) is None:
        console.print(Panel(
            f"[red]Unknown workflow: {workflow_id}[/red]\n\n[yellow]Run the 'workflows' command to list the catalog.[/yellow]",
            title="[bold red]Error[/bold red]",
            border_style="red"
        ))
        raise typer.Exit(1)

    try:
        task_context = json.loads(context) if context else {}
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --context JSON: {str(e)}[/red]")
        raise typer.Exit(1)

    try:
        system = load_system(config, verbose)
    except Exception as e:
        console.print(Panel(
            f"[red]Failed to initialize system: {str(e)}[/red]\n\n[yellow]Please check your configuration and try again.[/yellow]",
            title="[bold red]Initialization Error[/bold red]",
            border_style="red"
        ))
        raise typer.Exit(1)

    console.print(create_header())
    try:
        result = asyncio.run(run_with_progress(system, workflow_id, task_context))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130)
    finally:
        system.logging_manager.shutdown()

    show_result(system, result)
    if not result.succeeded:
        raise typer.Exit(2)


@app.command()
def workflows():
    """List the workflow catalog."""
    show_workflows()


@app.command()
def info(
    config: str = typer.Option(
        "config.yaml",
        "--config",
        "-c",
        help="Path to configuration file"
    )
):
    """Display system configuration."""
    try:
        system = load_system(config, verbose=False)
    except Exception as e:
        console.print(f"[red]Failed to initialize system: {str(e)}[/red]")
        raise typer.Exit(1)

    details = system.get_system_info()
    table = Table(title="System Configuration", box=box.ROUNDED)
    table.add_column("Property", style="cyan", width=24)
    table.add_column("Value", style="white")
    for key, value in details["config"].items():
        table.add_row(key.replace("_", " ").title(), str(value))
    table.add_row("Agents", ", ".join(details["agents"]))
    table.add_row("Log file", details["logging"]["log_file"])
    table.add_row("Log level", details["logging"]["log_level"])
    console.print(table)


if __name__ == "__main__":
    app()
