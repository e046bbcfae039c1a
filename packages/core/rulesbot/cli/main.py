"""Main CLI entry point for rulesbot"""

import logging
import sys
from pathlib import Path
from typing import Iterator, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule

from rulesbot import __version__
from rulesbot.auth.login import ChallengeLoginFlow, challenge_url
from rulesbot.config import CliConfig
from rulesbot.diff.extractor import get_diff
from rulesbot.diff.parser import parse_diff_to_files, parse_diff_to_hunks
from rulesbot.diff.snippets import Snippet, iter_file_snippets, iter_hunk_snippets
from rulesbot.errors import GitCommandError

console = Console()


def _configure_logging(debug: bool) -> None:
    """Route library logging through rich; warnings only unless --debug."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


def _print_error(exc: Exception) -> None:
    console.print(f"\n[bold red]❌ Error:[/bold red] {exc}", style="red")
    if isinstance(exc, GitCommandError) and exc.hint:
        console.print(f"\n[yellow]{exc.hint}[/yellow]")


@click.group()
@click.version_option(version=__version__, prog_name="rulesbot")
def cli():
    """
    rulesbot - code review rules for your diffs

    Log in to the rules service and extract the code your changes touch.
    """
    pass


@cli.command()
@click.option("--host", help=f"API host (default: {CliConfig.DEFAULT_HOST})")
@click.option("--debug", is_flag=True, help="Show verbose diagnostic output")
def login(host: Optional[str], debug: bool):
    """
    Log in through the browser and store the access token.

    Example:

        rulesbot login
    """
    _configure_logging(debug)
    try:
        flow = ChallengeLoginFlow(
            CliConfig.get_host(host),
            max_attempts=CliConfig.get_max_poll_attempts(),
        )
        challenge = flow.initiate()
        url = challenge_url(flow.host, challenge.token)
        console.print(f"Click here: [link={url}][blue]{url}[/blue][/link]")

        with console.status("Waiting for browser confirmation...", spinner="arc"):
            flow.poll(challenge.token)

        console.print("[green]✅ You're logged in![/green]")
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Login cancelled by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _print_error(e)
        sys.exit(1)


def _collect_snippets(text: str, by: str, repo: Path) -> Iterator[Snippet]:
    if by == "hunks":
        return iter_hunk_snippets(parse_diff_to_hunks(text), repo)
    return iter_file_snippets(parse_diff_to_files(text), repo)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--diff", "diff_spec", help="Explicit git diff specifier (e.g., main, abc123~1..abc123)")
@click.option(
    "--by",
    type=click.Choice(["files", "hunks"]),
    default="hunks",
    help="Snippet granularity (default: hunks)",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text)",
)
@click.option("--debug", is_flag=True, help="Show verbose diagnostic output")
def changes(path: str, diff_spec: Optional[str], by: str, output_format: str, debug: bool):
    """
    Show the code touched by the current diff.

    Without --diff the diff is taken from the GitHub Actions pull request
    or push context when present, otherwise from HEAD^.

    Examples:

        rulesbot changes . --diff main

        rulesbot changes --by files --format json
    """
    _configure_logging(debug)
    try:
        repo = Path(path).resolve()
        diff_content = get_diff(diff_spec, cwd=repo)

        if not diff_content.strip():
            console.print("[yellow]No changes found in diff.[/yellow]")
            sys.exit(0)

        snippets = _collect_snippets(diff_content, by, repo)

        if output_format == "json":
            console.print_json(data=[snippet.to_json() for snippet in snippets])
        else:
            count = 0
            for snippet in snippets:
                count += 1
                console.print(Rule(f"[bold cyan]{snippet.file}[/bold cyan]"))
                console.print(snippet.snippet, markup=False, highlight=False)
            console.print(f"\n[dim]{count} snippet(s)[/dim]")

        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Cancelled by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _print_error(e)
        console.print("\n[dim]Run with --help for usage information[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
