"""CLI commands for dumping Flutter UI state."""

from pathlib import Path

import typer

from flutterdump.core.workflow import DumpWorkflow
from flutterdump.exceptions import FlutterDumpError
from flutterdump.utils.config import load_settings
from flutterdump.utils.logs import configure_stderr
from flutterdump.utils.output import console

app = typer.Typer(no_args_is_help=True)

URI_HELP = (
    "VM Service URI of a running app (e.g., ws://127.0.0.1:8181/ws). "
    "When omitted, the app is started with 'flutter run --machine'."
)


@app.command("design")
def dump_design(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Flutter project root.",
    ),
    uri: str = typer.Option(None, "--uri", "-u", help=URI_HELP),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (default: <project>/flutter_inspector_dump).",
    ),
    attempts: int = typer.Option(
        None,
        "--attempts",
        help="Attempts while waiting for the widget tree (default: 20).",
    ),
    interval: float = typer.Option(
        None,
        "--interval",
        help="Seconds between widget tree attempts (default: 0.5).",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log every step to stderr."),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Dump the inspector widget tree with layout and details for every node.

    Writes summary_tree.json, layout_by_id.json, details_by_id.json,
    full_design.json and session.log.

    Examples:
        # Attach to a running app
        flutterdump dump design --uri ws://127.0.0.1:8181/ws

        # Launch the app in the current project and dump it
        flutterdump dump design
    """
    console.set_json_mode(json_output)
    configure_stderr(verbose)

    try:
        settings = load_settings(max_attempts=attempts, retry_interval=interval)
        workflow = DumpWorkflow(project, settings, uri=uri, output_dir=output)
        _announce_target(workflow)

        with console.status("Dumping widget tree..."):
            result = workflow.run_design()

        if json_output:
            typer.echo(result.model_dump_json(indent=2))
            return

        console.print_success(f"Design dump written: {result.dump_dir}")
        console.print_fields(
            {
                "Nodes": result.node_count,
                "Layouts": result.layout_count,
                "Details": result.details_count,
            }
        )
        if result.failures:
            console.print_warning(
                f"{len(result.failures)} node fetch(es) failed, see session.log"
            )

    except FlutterDumpError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("layout")
def dump_layout(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Flutter project root.",
    ),
    crawler: Path = typer.Option(
        None,
        "--crawler",
        "-c",
        help="Dart crawler library exposing figmaExtractorEntryPoint().",
    ),
    uri: str = typer.Option(None, "--uri", "-u", help=URI_HELP),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (default: <project>/flutter_figma_dump).",
    ),
    details: bool = typer.Option(
        False,
        "--details",
        help="Also fetch layout and details for every valueId in the result.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log every step to stderr."),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Inject the layout crawler, hot reload, and dump its JSON document.

    The project's lib/main.dart is restored and the crawler removed when
    the command ends, whether it succeeds or not.

    Examples:
        # Launch the app with the crawler injected
        flutterdump dump layout --crawler figma_exporter_inject.dart

        # Attach to a running app (hot reload it when prompted)
        flutterdump dump layout -c crawler.dart --uri ws://127.0.0.1:8181/ws
    """
    console.set_json_mode(json_output)
    configure_stderr(verbose)

    try:
        settings = load_settings(crawler_source=crawler)
        workflow = DumpWorkflow(project, settings, uri=uri, output_dir=output)
        if settings.crawler_source is not None:
            console.print_info(f"Crawler: {settings.crawler_source}")
        _announce_target(workflow)

        result = workflow.run_layout(include_details=details)

        if json_output:
            typer.echo(result.model_dump_json(indent=2))
            return

        console.print_success(f"Layout dump written: {result.final_path}")
        console.print_fields(
            {
                "Nodes": result.node_count,
                "Raw JSON": f"{result.raw_path} ({result.raw_length} chars)",
                "Details": (
                    f"{len(result.details.layout_by_id)} layout / "
                    f"{len(result.details.details_by_id)} details"
                    if result.details is not None
                    else None
                ),
            }
        )
        if not result.complete:
            console.print_warning("The VM truncated the result; the dump may be incomplete")
        for issue in result.asset_issues:
            console.print_warning(f"{issue.error}: {issue.image_path}")

    except FlutterDumpError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


def _announce_target(workflow: DumpWorkflow) -> None:
    if workflow.uri:
        console.print_info(f"Attaching to {workflow.uri}")
    else:
        console.print_info(f"Launching 'flutter run --machine' in {workflow.project_path}")
