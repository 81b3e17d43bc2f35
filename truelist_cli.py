#!/usr/bin/env python3
"""
truelist_cli.py: email validation from your terminal

Validate single emails, bulk CSV files, or pipe from stdin using the
Truelist API.

Credentials
  truelist config set api-key YOUR_API_KEY
  (or TRUELIST_API_KEY in the environment / a .env file)

Usage
  truelist validate user@example.com [--json | --quiet]
  truelist validate --file emails.csv [--column email] [--output out.csv]
  cat emails.txt | truelist validate
  truelist whoami
"""

from __future__ import annotations

import logging
import sys
from typing import NoReturn, Optional

import click
from dotenv import find_dotenv, load_dotenv

from truelist import __version__, config, output
from truelist.batch import (
    BatchRunner,
    default_output_path,
    find_email_column,
    read_csv,
    write_validated_csv,
)
from truelist.cancel import CancelToken
from truelist.client import Client
from truelist.errors import TruelistError

logger = logging.getLogger("truelist")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def fail(msg: str) -> NoReturn:
    output.print_error(msg)
    sys.exit(1)


def make_client(ctx: click.Context) -> Client:
    try:
        api_key = config.get_api_key()
    except TruelistError as e:
        fail(str(e))
    return Client(api_key, base_url=ctx.obj.get("base_url"))


# --------------------------
# CLI
# --------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option("--base-url", envvar=config.BASE_URL_ENV, hidden=True)
@click.pass_context
def main(ctx: click.Context, verbose: bool, base_url: Optional[str]) -> None:
    """Truelist CLI: email validation from your terminal."""
    load_dotenv(find_dotenv(usecwd=True))
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url


@main.command()
@click.argument("email", required=False)
@click.option("-f", "--file", "file_", type=click.Path(dir_okay=False), help="CSV file of emails to validate.")
@click.option("-o", "--output", "output_path", help="Output file path (default: <input>_validated.csv).")
@click.option("-c", "--column", help="Name of the email column in the CSV.")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON.")
@click.option("-q", "--quiet", is_flag=True, help="Output only the state (valid/invalid/risky/unknown).")
@click.pass_context
def validate(
    ctx: click.Context,
    email: Optional[str],
    file_: Optional[str],
    output_path: Optional[str],
    column: Optional[str],
    as_json: bool,
    quiet: bool,
) -> None:
    """Validate one or more email addresses.

    \b
    Single email:  truelist validate user@example.com
    CSV file:      truelist validate --file emails.csv
    Stdin (pipe):  cat emails.txt | truelist validate
    """
    if file_ and (as_json or quiet):
        flag = "--json" if as_json else "--quiet"
        fail(f"{flag} flag is not supported with --file mode (CSV output is always used)")

    stdin = click.get_text_stream("stdin")
    if not file_ and not email and stdin.isatty():
        fail("no email provided — pass an email as an argument, use --file, or pipe from stdin")

    cancel = CancelToken()
    with make_client(ctx) as client:
        try:
            if file_:
                run_file_validation(client, cancel, file_, output_path, column)
            elif email:
                run_single_validation(client, cancel, email, as_json, quiet)
            else:
                run_stream_validation(client, cancel, stdin, as_json, quiet)
        except KeyboardInterrupt:
            cancel.cancel()
            output.print_error("interrupted")
            sys.exit(130)


def run_single_validation(
    client: Client, cancel: CancelToken, email: str, as_json: bool, quiet: bool
) -> None:
    try:
        result = client.validate(email, cancel)
    except TruelistError as e:
        fail(str(e))

    if as_json:
        output.print_result_json(result)
    elif quiet:
        output.print_result_quiet(result)
    else:
        output.print_result(result)


def run_stream_validation(client: Client, cancel: CancelToken, stream, as_json: bool, quiet: bool) -> None:
    def show(result):
        if as_json:
            return  # collected and printed at the end
        if quiet:
            output.print_result_quiet(result)
        else:
            output.print_result(result)
            click.echo()

    runner = BatchRunner(client, cancel, on_result=show, on_warning=output.print_error)
    try:
        report = runner.run(stream)
    except TruelistError as e:
        fail(str(e))

    if as_json:
        output.print_results_json(report.results)
    elif not quiet:
        output.print_summary(report)


def run_file_validation(
    client: Client,
    cancel: CancelToken,
    path: str,
    output_path: Optional[str],
    column: Optional[str],
) -> None:
    try:
        header, rows = read_csv(path)
    except TruelistError as e:
        fail(str(e))

    email_col = find_email_column(header, column)
    if email_col == -1:
        if column:
            fail(f'column "{column}" not found in CSV header')
        fail("could not detect email column — use --column to specify it")

    out = output_path or default_output_path(path)
    logger.debug("validating %d rows from %s into %s", len(rows), path, out)

    def warn(msg: str) -> None:
        click.echo(err=True)
        output.print_warning(msg)

    runner = BatchRunner(client, cancel, on_warning=warn)
    with click.progressbar(length=len(rows), label="Validating", file=sys.stderr, show_pos=True, width=40) as bar:
        try:
            report = write_validated_csv(runner, header, rows, email_col, out, on_row=lambda: bar.update(1))
        except TruelistError as e:
            fail(str(e))

    click.echo(f"\nResults written to {out}", err=True)
    output.print_summary(report, file=sys.stderr)


@main.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Display current account information.

    Checks your API key and shows the account email, plan and remaining credits.
    """
    with make_client(ctx) as client:
        try:
            info = client.whoami(CancelToken())
        except TruelistError as e:
            fail(str(e))
    output.print_account(info)


@main.group("config")
def config_cmd() -> None:
    """Manage CLI configuration."""


@config_cmd.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a configuration value.

    \b
    Supported keys:
      api-key    Your Truelist API key
    """
    if key != "api-key":
        fail(f"unknown config key: {key} (supported: api-key)")
    try:
        cfg = config.load()
        cfg.api_key = value
        path = config.save(cfg)
    except TruelistError as e:
        fail(str(e))
    click.echo(f"API key saved to {path}")


@main.command()
def version() -> None:
    """Print the CLI version."""
    click.echo(f"truelist {__version__}")


if __name__ == "__main__":
    main()
