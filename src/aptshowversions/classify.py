"""Upgrade state of installed packages, and the names candidates are shown under."""

import logging
from collections.abc import Sequence
from enum import IntEnum

from aptshowversions.distribution import DistributionResolver
from aptshowversions.errors import InvalidStateError
from aptshowversions.models import Package, Version

logger = logging.getLogger(__name__)


class UpgradeState(IntEnum):
    """Ordered so that everything from AUTOMATIC_UPGRADE on is an upgrade."""

    NOT_INSTALLED = 0
    NOT_AVAILABLE = 1
    UP_TO_DATE = 2
    DOWNGRADE = 3
    AUTOMATIC_UPGRADE = 4
    MANUAL_UPGRADE = 5

    @property
    def is_upgrade(self) -> bool:
        return self >= UpgradeState.AUTOMATIC_UPGRADE


def classify(
    package: Package,
    installed: Version | None,
    candidate: Version | None,
    versions: Sequence[Version],
) -> UpgradeState:
    """Decide the upgrade state of a package.

    The checks run in a fixed order and the first one that applies wins.

    Args:
        package: The package being classified
        installed: Its installed version, if any
        candidate: The version the policy would install
        versions: Every version of the package, newest first

    Returns:
        The single state the package is in

    Raises:
        InvalidStateError: If the data fits none of the states
    """
    if installed is None:
        return UpgradeState.NOT_INSTALLED

    if len(versions) <= 1 and not installed.downloadable:
        return UpgradeState.NOT_AVAILABLE

    if candidate is not None and not candidate.is_same(installed):
        return UpgradeState.AUTOMATIC_UPGRADE

    if installed.is_same(candidate) and installed.downloadable:
        return UpgradeState.UP_TO_DATE

    # nothing installable is on offer, but the archive may still have something newer
    if versions and not versions[0].is_same(installed):
        return UpgradeState.MANUAL_UPGRADE

    position = next((i for i, v in enumerate(versions) if v.is_same(installed)), None)
    if position is not None and position + 1 < len(versions):
        return UpgradeState.DOWNGRADE

    raise InvalidStateError(
        f"{package.name}:{package.architecture} {installed.version} fits no upgrade state "
        f"(candidate {candidate.version if candidate else None}, {len(versions)} versions)"
    )


def display_name(
    package: Package,
    version: Version | None,
    resolver: DistributionResolver,
    native_arch: str | None = None,
) -> str:
    """Return ``name/distribution`` for the best source of ``version``.

    Files are considered in order; a later file only replaces the current
    choice when its priority is strictly higher, so the first file wins ties.
    """
    name = package.full_name(native_arch)
    if version is None:
        return name

    best = ""
    best_priority = 0
    for vf in version.source_files():
        if best and vf.priority <= best_priority:
            continue
        if dist := resolver.resolve(vf.file):
            best = dist
            best_priority = vf.priority
    return f"{name}/{best}" if best else name
