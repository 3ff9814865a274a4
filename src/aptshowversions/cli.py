"""Command line interface."""

import logging
from pathlib import Path

import typer

from aptshowversions.cache import PackageCache
from aptshowversions.config import AptConfig, ReportOptions, Settings
from aptshowversions.constants import PROG_NAME, VERSION
from aptshowversions.distribution import DistributionResolver
from aptshowversions.errors import CacheLoadError, ConfigurationError
from aptshowversions.policy import Policy
from aptshowversions.report import Reporter
from aptshowversions.sources import SourceList

logger = logging.getLogger(__name__)

cli = typer.Typer(
    name=PROG_NAME,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROG_NAME} {VERSION}")
        raise typer.Exit()


@cli.command()
def show_versions(
    packages: list[str] | None = typer.Argument(None, help="Package names, globs or regular expressions"),
    upgradeable: bool = typer.Option(False, "-u", "--upgradeable", help="Show only upgradeable packages"),
    brief: bool = typer.Option(False, "-b", "--brief", help="Show package names only"),
    all_versions: bool = typer.Option(False, "-a", "--allversions", help="Show all available versions"),
    no_hold: bool = typer.Option(False, "-n", "--no-hold", help="Do not show held packages"),
    regex_all: bool = typer.Option(
        False, "-R", "--regex-all", help="Regular expressions also apply to uninstalled packages"
    ),
    config_files: list[Path] | None = typer.Option(None, "-c", "--config-file", help="Read this configuration file"),
    options: list[str] | None = typer.Option(None, "-o", "--option", help="Set a configuration item, Key=Value"),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Log more; repeat for debug output"),
    initialize: bool = typer.Option(False, "-i", "--initialize", hidden=True),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version"),
):
    """Show available versions of installed packages and whether they can be upgraded."""
    if verbose:
        logging.getLogger("aptshowversions").setLevel(logging.DEBUG if verbose > 1 else logging.INFO)
    if initialize:
        logger.info("--initialize is accepted for compatibility and has no effect")
    patterns = packages or []

    try:
        config = AptConfig()
        for path in config_files or []:
            config.read_file(path)
        for item in options or []:
            config.parse_option(item)
        report_options = ReportOptions.from_config(
            config,
            upgrades_only=upgradeable,
            brief=brief,
            all_versions=all_versions,
            no_hold=no_hold,
            regex_all=regex_all,
        )
        report_options.check(patterns)
        settings = Settings.from_config(config)
    except ConfigurationError as e:
        logger.error(e.message)
        raise typer.Exit(1)

    try:
        cache = PackageCache.load(settings)
    except CacheLoadError as e:
        logger.error(e.message)
        raise typer.Exit(1)

    policy = Policy.load(settings.preferences, settings.preferences_parts)
    policy.apply(cache)
    sources = SourceList(settings.source_list, settings.source_parts).refresh()
    resolver = DistributionResolver(sources)

    code = Reporter(cache, policy, resolver, report_options).run(patterns)
    logger.debug(
        f"Distribution names: {len(resolver.cache)} files, {resolver.cache.hits} hits, {resolver.scans} source scans"
    )
    raise typer.Exit(code)


def main() -> None:
    """Main entry point for the apt-show-versions CLI."""
    cli(prog_name=PROG_NAME)


if __name__ == "__main__":
    main()
