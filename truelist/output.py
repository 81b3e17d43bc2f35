"""Terminal rendering of results, summaries and errors."""

import json
from typing import IO, Dict, List, Optional, Tuple

import click

from .batch import BatchReport
from .models import AccountInfo, ValidationResult

_STATE_STYLES: Dict[str, Tuple[str, Dict]] = {
    "valid": ("✓", {"fg": "green", "bold": True}),
    "invalid": ("✗", {"fg": "red", "bold": True}),
    "risky": ("!", {"fg": "yellow", "bold": True}),
}
_DIM = {"dim": True}


def _state_style(state: str) -> Tuple[str, Dict]:
    return _STATE_STYLES.get(state.lower(), ("?", _DIM))


def _label(text: str, width: int) -> str:
    return click.style(text.ljust(width), **_DIM)


def print_result(r: ValidationResult, file: Optional[IO] = None) -> None:
    icon, style = _state_style(r.state)
    click.secho(f"{icon} {r.email}", file=file, **style)
    click.echo(f"  {_label('State:', 12)} {click.style(r.state, **style)}", file=file)
    click.echo(f"  {_label('Sub-state:', 12)} {r.sub_state}", file=file)
    click.echo(f"  {_label('Free email:', 12)} {'yes' if r.free_email else 'no'}", file=file)
    if r.role:
        click.echo(f"  {_label('Role:', 12)} yes", file=file)
    if r.disposable:
        click.echo(f"  {_label('Disposable:', 12)} yes", file=file)
    if r.suggestion:
        click.echo(f"  {_label('Suggestion:', 12)} {click.style(r.suggestion, fg='cyan')}", file=file)


def print_result_quiet(r: ValidationResult, file: Optional[IO] = None) -> None:
    click.echo(r.state, file=file)


def print_results_json(results: List[ValidationResult], file: Optional[IO] = None) -> None:
    click.echo(json.dumps([r.to_dict() for r in results], indent=2), file=file)


def print_result_json(r: ValidationResult, file: Optional[IO] = None) -> None:
    click.echo(json.dumps(r.to_dict(), indent=2), file=file)


def print_summary(report: BatchReport, file: Optional[IO] = None) -> None:
    c = report.counts
    click.echo(file=file)
    click.secho("Summary", bold=True, file=file)
    click.echo(f"  Total:   {report.total}", file=file)
    click.secho(f"  Valid:   {c['valid']}", fg="green", file=file)
    click.secho(f"  Invalid: {c['invalid']}", fg="red", file=file)
    click.secho(f"  Risky:   {c['risky']}", fg="yellow", file=file)
    click.secho(f"  Unknown: {c['unknown']}", dim=True, file=file)
    if report.failed:
        click.secho(f"  Failed:  {report.failed}", fg="red", dim=True, file=file)


def print_account(info: AccountInfo, file: Optional[IO] = None) -> None:
    click.secho("Account Info", bold=True, file=file)
    click.echo(f"  {_label('Email:', 10)} {info.email}", file=file)
    click.echo(f"  {_label('Plan:', 10)} {info.plan}", file=file)
    click.echo(f"  {_label('Credits:', 10)} {info.credits}", file=file)


def print_error(msg: str) -> None:
    click.secho(f"Error: {msg}", fg="red", bold=True, err=True)


def print_warning(msg: str) -> None:
    click.secho(f"Warning: {msg}", fg="yellow", err=True)
