"""
LinkPure CLI - Command Line Interface

Entry point for URL chain checks, rule management, and building the
shared rule bundle from external providers.
"""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from linkpure import __version__
from linkpure.core.config import load_settings
from linkpure.core.constants import ChainStatus, DEFAULTS
from linkpure.core.exceptions import LinkPureError, RuleImportError, RuleNotFoundError
from linkpure.core.models import RuleRecord, Settings
from linkpure.orchestrator.pipeline import BundlePipeline
from linkpure.rules.bundle import (
    export_rules,
    import_rules,
    load_bundle,
    new_rule_id,
    read_json,
    write_document,
)
from linkpure.rules.resolver import ChainResolver, verify_rules
from linkpure.storage.store import RuleStore


# Create CLI app
app = typer.Typer(
    name="linkpure",
    help="LinkPure - URL rewrite rules for tracking removal and redirect unwrapping",
    add_completion=False,
    no_args_is_help=True,
)

rules_app = typer.Typer(help="Manage the local rule list")
app.add_typer(rules_app, name="rules")

# Rich console for output
console = Console()

STATUS_STYLES = {
    ChainStatus.MATCHED: "green",
    ChainStatus.NOT_MATCHED: "dim",
    ChainStatus.CIRCULAR_REDIRECT: "red",
    ChainStatus.INFINITE_REDIRECT: "yellow",
}


# ============================================================================
# Shared State
# ============================================================================

@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file (defaults to configs/linkpure.yaml)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output",
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": config, "settings": None}


def _settings(ctx: typer.Context) -> Settings:
    if ctx.obj["settings"] is None:
        ctx.obj["settings"] = load_settings(ctx.obj["config"])
    return ctx.obj["settings"]


def _open_store(ctx: typer.Context) -> RuleStore:
    return RuleStore(_settings(ctx).db_path)


def _fail(error: LinkPureError) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(code=1)


# ============================================================================
# Main Commands
# ============================================================================

@app.command()
def check(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to resolve"),
    rules_file: Optional[Path] = typer.Option(
        None,
        "--rules",
        "-r",
        help="Rule file to check against instead of the local rule list",
        exists=True,
    ),
    max_redirects: Optional[int] = typer.Option(
        None,
        "--max-redirects",
        "-m",
        min=1,
        help="Maximum rewrite rounds",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """
    Resolve the rewrite chain of a URL.
    """
    try:
        if max_redirects is None and (rules_file is None or ctx.obj["config"] is not None):
            max_redirects = _settings(ctx).max_redirects
        if rules_file:
            rules = load_bundle(rules_file).rules
        else:
            with _open_store(ctx) as store:
                rules = store.enabled_rules()
    except LinkPureError as e:
        _fail(e)

    resolver = ChainResolver(max_redirects or DEFAULTS["max_redirects"])
    result = resolver.resolve(rules, url)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
        return

    style = STATUS_STYLES[result.status]
    console.print(f"[{style}]{result.status.value}[/{style}]")

    if result.urls:
        table = Table(title="Rewrite Chain")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Rule", style="cyan")
        table.add_column("URL")
        for index, (rule_id, step_url) in enumerate(zip(result.rule_ids, result.urls), 1):
            table.add_row(str(index), escape(rule_id), escape(step_url))
        console.print(table)


@app.command()
def fetch(ctx: typer.Context) -> None:
    """
    Download and normalize rules from every configured provider.
    """
    try:
        pipeline = BundlePipeline(_settings(ctx))
        with console.status("[cyan]Downloading provider rules..."):
            report = asyncio.run(pipeline.download())
    except LinkPureError as e:
        _fail(e)

    for name, count in report.written.items():
        console.print(f"[green]✓[/green] {name}: {count} rules")
    for name in report.created_templates:
        console.print(f"[blue]Created empty rule file for[/blue] {name}")


@app.command()
def merge(ctx: typer.Context) -> None:
    """
    Merge all source rule files into the shared bundle.
    """
    try:
        settings = _settings(ctx)
        result = BundlePipeline(settings).merge()
    except LinkPureError as e:
        _fail(e)

    _print_merge_summary(result, settings.bundle_output)


@app.command()
def build(ctx: typer.Context) -> None:
    """
    Fetch every provider, then merge all sources into the shared bundle.
    """
    try:
        settings = _settings(ctx)
        with console.status("[cyan]Building shared bundle..."):
            result = BundlePipeline(settings).run_sync()
    except LinkPureError as e:
        _fail(e)

    _print_merge_summary(result, settings.bundle_output)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold cyan]LinkPure[/bold cyan] version [yellow]{__version__}[/yellow]")


def _print_merge_summary(result, output: Path) -> None:
    table = Table(title="Sources (priority order)")
    table.add_column("Source", style="cyan")
    table.add_column("Rules", justify="right")
    table.add_column("Duplicates removed", justify="right")
    for name, count in result.source_counts.items():
        table.add_row(name, str(count), str(result.duplicates.get(name, 0)))
    console.print(table)
    console.print(Panel.fit(
        f"[green]{len(result.rules)}[/green] rules written to {output}",
        title="Merge complete",
    ))


# ============================================================================
# Rule Management
# ============================================================================

@rules_app.command("list")
def list_rules(
    ctx: typer.Context,
    enabled_only: bool = typer.Option(False, "--enabled", help="Only enabled rules"),
) -> None:
    """List rules in evaluation order."""
    try:
        with _open_store(ctx) as store:
            rules = store.enabled_rules() if enabled_only else store.list_rules()
    except LinkPureError as e:
        _fail(e)

    if not rules:
        console.print("[yellow]No rules[/yellow]")
        return

    table = Table(title=f"Rules ({len(rules)})")
    table.add_column("ID", style="cyan")
    table.add_column("On")
    table.add_column("Pattern")
    table.add_column("Rewrite")
    for rule in rules:
        rewrite = (
            "remove " + ", ".join(rule.remove_params)
            if rule.strips_params
            else repr(rule.substitution)
        )
        table.add_row(
            escape(rule.id),
            "[green]✓[/green]" if rule.enabled else "[dim]✗[/dim]",
            escape(rule.match_pattern),
            escape(rewrite),
        )
    console.print(table)


@rules_app.command("add")
def add_rule(
    ctx: typer.Context,
    pattern: str = typer.Option(..., "--pattern", "-p", help="Regex matched against URLs"),
    substitution: Optional[str] = typer.Option(
        None, "--substitution", "-s", help="Replacement template ($1, $2, ...)"
    ),
    remove_params: Optional[List[str]] = typer.Option(
        None, "--remove-param", "-x", help="Query parameter to strip (repeatable)"
    ),
    rule_id: Optional[str] = typer.Option(None, "--id", help="Rule id (generated if omitted)"),
    disabled: bool = typer.Option(False, "--disabled", help="Store the rule disabled"),
    append: bool = typer.Option(False, "--append", help="Add at the end instead of the top"),
) -> None:
    """Add a rule."""
    try:
        rule = RuleRecord(
            id=rule_id or new_rule_id(),
            match_pattern=pattern,
            substitution=substitution,
            remove_params=list(remove_params or []),
            enabled=not disabled,
        )
        with _open_store(ctx) as store:
            store.insert_rule(rule, prepend=not append)
    except LinkPureError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Added rule {rule.id}")


@rules_app.command("update")
def update_rule(
    ctx: typer.Context,
    rule_id: str = typer.Argument(..., help="Rule id"),
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p"),
    substitution: Optional[str] = typer.Option(None, "--substitution", "-s"),
    remove_params: Optional[List[str]] = typer.Option(None, "--remove-param", "-x"),
) -> None:
    """Replace fields of an existing rule."""
    if substitution is not None and remove_params:
        raise typer.BadParameter(
            "use either --substitution or --remove-param, not both",
            param_hint="'--substitution' / '--remove-param'",
        )

    try:
        changes = {}
        if pattern is not None:
            changes["match_pattern"] = pattern
        if substitution is not None:
            changes.update(substitution=substitution, remove_params=[])
        if remove_params:
            changes.update(substitution=None, remove_params=list(remove_params))

        with _open_store(ctx) as store:
            rule = store.get_rule(rule_id)
            if rule is None:
                raise RuleNotFoundError(f"Rule not found: {rule_id}")
            store.update_rule(replace(rule, **changes))
    except LinkPureError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Updated rule {rule_id}")


@rules_app.command("delete")
def delete_rule(
    ctx: typer.Context,
    rule_id: str = typer.Argument(..., help="Rule id"),
) -> None:
    """Delete a rule."""
    try:
        with _open_store(ctx) as store:
            deleted = store.delete_rule(rule_id)
    except LinkPureError as e:
        _fail(e)

    if not deleted:
        console.print(f"[yellow]No rule with id {rule_id}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Deleted rule {rule_id}")


@rules_app.command("enable")
def enable_rule(ctx: typer.Context, rule_id: str = typer.Argument(...)) -> None:
    """Enable a rule."""
    _toggle(ctx, rule_id, True)


@rules_app.command("disable")
def disable_rule(ctx: typer.Context, rule_id: str = typer.Argument(...)) -> None:
    """Disable a rule."""
    _toggle(ctx, rule_id, False)


def _toggle(ctx: typer.Context, rule_id: str, enabled: bool) -> None:
    try:
        with _open_store(ctx) as store:
            store.set_enabled(rule_id, enabled)
    except LinkPureError as e:
        _fail(e)

    state = "enabled" if enabled else "disabled"
    console.print(f"[green]✓[/green] Rule {rule_id} {state}")


@rules_app.command("import")
def import_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="JSON rule file", exists=True),
    keep_ids: bool = typer.Option(False, "--keep-ids", help="Keep ids from the file"),
) -> None:
    """Import rules from a JSON file (all or nothing)."""
    try:
        rules = import_rules(read_json(path), remap_ids=not keep_ids)
        with _open_store(ctx) as store:
            store.insert_rules(rules)
    except RuleImportError as e:
        console.print(f"[red]Import rejected:[/red] {len(e.issues)} invalid rule(s)")
        for issue in e.issues:
            console.print(escape(str(issue)))
        raise typer.Exit(code=1)
    except LinkPureError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Imported {len(rules)} rules")


@rules_app.command("export")
def export_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Output JSON file"),
) -> None:
    """Export the rule list to a JSON file."""
    try:
        with _open_store(ctx) as store:
            rules = store.list_rules()
        write_document(export_rules(rules), path)
    except LinkPureError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Exported {len(rules)} rules to {path}")


@rules_app.command("verify")
def verify(
    ctx: typer.Context,
    rules_file: Optional[Path] = typer.Argument(
        None, help="Rule file (defaults to the local rule list)", exists=True
    ),
) -> None:
    """Run the test cases embedded in rules."""
    try:
        if rules_file:
            rules = load_bundle(rules_file).rules
        else:
            with _open_store(ctx) as store:
                rules = store.list_rules()
    except LinkPureError as e:
        _fail(e)

    failures = verify_rules(rules)
    tested = sum(len(rule.tests) for rule in rules)

    if not failures:
        console.print(f"[green]✓[/green] {tested} test case(s) passed")
        return

    table = Table(title=f"{len(failures)} of {tested} test case(s) failed")
    table.add_column("Rule", style="cyan")
    table.add_column("From")
    table.add_column("Expected", style="green")
    table.add_column("Actual", style="red")
    for failure in failures:
        table.add_row(
            escape(failure.rule_id),
            escape(failure.from_url),
            escape(failure.expected),
            escape(failure.actual),
        )
    console.print(table)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
