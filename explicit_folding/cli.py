"""
Prints the folding ranges an editor would offer for a text file.
Rules come from `--rules` or from the nearest project configuration.
"""

from __future__ import annotations

import json
from contextlib import nullcontext
from pathlib import Path

import click
from .config import ConfigError, FoldingConfig, build_config, load_rules_file
from .filesystem import env_limit, read_document, resolve_document_path
from .models import FoldingRange
from .provider import FoldingProvider
from .utils.logger import debug_trace

__all__ = ["cli"]


@click.command()
@click.version_option()
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False),
    help="TOML file with a `rules` array (replaces configured rules)",
)
@click.option("--tab-size", type=int, help="Tab width for indentation folding")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--auto-fold", is_flag=True, help="Also report the lines to collapse")
@click.option("--debug", is_flag=True, help="Trace patterns and matches on stderr")
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
def cli(
    filepath: str,
    rules_path: str | None = None,
    tab_size: int | None = None,
    output_format: str = "text",
    auto_fold: bool = False,
    debug: bool = False,
):
    """
    Print the folding ranges of FILEPATH.

    Args:
        filepath: Path to the file to fold.
        rules_path: Optional TOML file whose rules replace the configured ones.
        tab_size: Override for the configured tab width.
        output_format: ``text`` (one ``start-end kind`` line per range) or
            ``json``.
        auto_fold: Whether to print the lines the editor would collapse.
        debug: Whether to print the compile and match trace on stderr.

    Raises:
        click.BadParameter: If the path or a configuration value is invalid.
        click.ClickException: If no usable rules are configured or the file
            cannot be read.

    Examples:
        explicit-folding src/main.c --rules c.toml --format json
    """
    trace = debug_trace(click.get_text_stream("stderr")) if debug else nullcontext()
    with trace:
        ranges, collapsed = _fold_file(filepath, rules_path, tab_size, auto_fold)
        _echo_ranges(ranges, collapsed if auto_fold else None, output_format)


def _fold_file(
    filepath: str, rules_path: str | None, tab_size: int | None, auto_fold: bool
) -> tuple[list[FoldingRange], list[int]]:
    try:
        path = resolve_document_path(filepath)
        config = build_config(path.parent, tab_size=tab_size)
    except (ValueError, ConfigError) as error:
        raise click.BadParameter(str(error)) from error

    rules = _select_rules(rules_path, config)

    try:
        max_file_size = env_limit("max_file_size", config.max_file_size)
        max_nesting_depth = env_limit("max_nesting_depth", config.max_nesting_depth)
        document = read_document(path, max_file_size)
    except (ValueError, IOError) as error:
        raise click.ClickException(str(error)) from error

    collapsed: list[int] = []
    provider = FoldingProvider(
        rules,
        tab_size=config.tab_size,
        max_nesting_depth=max_nesting_depth,
        auto_fold_documents=[document] if auto_fold else (),
        fold_command=collapsed.extend,
    )
    ranges = sorted(
        provider.provide_folding_ranges(document),
        key=lambda folding_range: (folding_range.start, folding_range.end),
    )
    return ranges, collapsed


def _select_rules(rules_path: str | None, config: FoldingConfig) -> list[object]:
    try:
        rules = load_rules_file(Path(rules_path)) if rules_path else config.rules
    except ConfigError as error:
        raise click.ClickException(str(error)) from error

    if not rules:
        raise click.ClickException(
            "No folding rules configured; use --rules or [tool.explicit-folding] rules"
        )
    return list(rules)


def _echo_ranges(
    ranges: list[FoldingRange], collapsed: list[int] | None, output_format: str
) -> None:
    if output_format == "json":
        payload: dict[str, object] = {"ranges": [item.to_dict() for item in ranges]}
        if collapsed is not None:
            payload["autoFold"] = collapsed
        click.echo(json.dumps(payload, indent=2))
        return

    for folding_range in ranges:
        click.echo(f"{folding_range.start}-{folding_range.end} {folding_range.kind.value}")
    if collapsed:
        click.echo(f"auto-fold: {', '.join(str(line) for line in collapsed)}")


if __name__ == "__main__":
    cli()
