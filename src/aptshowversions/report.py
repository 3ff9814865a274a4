"""Walks the selected packages and prints their upgrade state."""

import logging
from collections.abc import Callable, Sequence

import typer

from aptshowversions.cache import MatchKind, PackageCache
from aptshowversions.classify import UpgradeState, classify, display_name
from aptshowversions.config import ReportOptions
from aptshowversions.distribution import DistributionResolver
from aptshowversions.models import Package, Version
from aptshowversions.policy import Policy
from aptshowversions.table import TablePrinter

logger = logging.getLogger(__name__)

# exit code when a single package was asked about with --upgradeable and it has no upgrade
EXIT_NOT_UPGRADEABLE = 2


class Reporter:
    """Produces the report for a package cache."""

    def __init__(
        self,
        cache: PackageCache,
        policy: Policy,
        resolver: DistributionResolver,
        options: ReportOptions | None = None,
        emit: Callable[[str], None] = typer.echo,
    ):
        self.cache = cache
        self.policy = policy
        self.resolver = resolver
        self.options = options or ReportOptions()
        self.emit = emit

    def name_of(self, package: Package, version: Version | None) -> str:
        return display_name(package, version, self.resolver, self.cache.native_arch)

    def all_versions_table(self, package: Package) -> TablePrinter:
        """Build the per-suite table listing every version and where it comes from."""
        table = TablePrinter(4)
        full_name = package.full_name(self.cache.native_arch)
        if package.installed is not None:
            table.insert_line(
                f"{full_name} {package.installed.version} {package.selection} {package.flag} {package.state}"
            )
        else:
            table.insert_line("Not installed")

        for version in package.versions:
            for vf in version.source_files():
                table.insert((full_name, version.version, vf.file.archive or "", vf.file.site or ""))
        return table

    def summary(self, package: Package, state: UpgradeState, candidate: Version | None) -> str:
        """Return the one-line summary for a package in ``state``."""
        full_name = package.full_name(self.cache.native_arch)
        installed = package.installed
        brief = self.options.brief

        match state:
            case UpgradeState.NOT_INSTALLED:
                return f"{full_name} not installed"
            case UpgradeState.NOT_AVAILABLE:
                return f"{full_name} {installed.version} installed: No available version in archive"
            case UpgradeState.AUTOMATIC_UPGRADE:
                name = self.name_of(package, candidate)
                return name if brief else f"{name} upgradeable from {installed.version} to {candidate.version}"
            case UpgradeState.UP_TO_DATE:
                name = self.name_of(package, candidate)
                return name if brief else f"{name} uptodate {installed.version}"
            case UpgradeState.MANUAL_UPGRADE:
                newest = package.versions[0]
                name = self.name_of(package, newest)
                return name if brief else f"{name} *manually* upgradeable from {installed.version} to {newest.version}"
            case UpgradeState.DOWNGRADE:
                name = self.name_of(package, candidate)
                return name if brief else f"{name} {installed.version} newer than version in archive"

    def report_package(self, package: Package, show_uninstalled: bool) -> tuple[UpgradeState | None, list[str]]:
        """Classify one package and return its state with the lines to print.

        The state is None when the package was filtered out before classification.
        """
        if self.options.no_hold and package.held:
            logger.debug(f"Skipping held package {package.name}")
            return None, []
        if package.installed is None and not show_uninstalled:
            return None, []

        candidate = self.policy.candidate(package)
        state = classify(package, package.installed, candidate, package.versions)
        if self.options.upgrades_only and not state.is_upgrade:
            return state, []

        lines = []
        if self.options.all_versions:
            lines.extend(self.all_versions_table(package).render().splitlines())
        lines.append(self.summary(package, state, candidate))
        return state, lines

    def run(self, patterns: Sequence[str] = ()) -> int:
        """Report on every package, or on the packages matching ``patterns``.

        Returns:
            The process exit code
        """
        if not patterns:
            for package in self.cache.sorted_packages():
                self._emit(self.report_package(package, show_uninstalled=False)[1])
            return 0

        upgradeable = False
        kind = None
        for pattern in patterns:
            kind, matches = self.cache.resolve(pattern)
            if not matches:
                logger.info(f"No packages found matching '{pattern}'")
                continue
            show_uninstalled = self.options.regex_all or kind == MatchKind.NAME
            for package in matches:
                state, lines = self.report_package(package, show_uninstalled)
                upgradeable |= state is not None and state.is_upgrade
                self._emit(lines)

        if self.options.upgrades_only and len(patterns) == 1 and kind == MatchKind.NAME and not upgradeable:
            return EXIT_NOT_UPGRADEABLE
        return 0

    def _emit(self, lines: list[str]) -> None:
        for line in lines:
            self.emit(line)
