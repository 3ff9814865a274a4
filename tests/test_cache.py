import gzip

import pytest

from aptshowversions.cache import MatchKind, PackageCache, parse_status
from aptshowversions.config import Settings
from aptshowversions.errors import CacheLoadError
from aptshowversions.models import CurrentState, InstallFlag, SelectionState

LIST_PREFIX = "deb.debian.org_debian_dists_bookworm_"


@pytest.fixture
def cache(apt_root) -> PackageCache:
    return PackageCache.load(Settings.from_root(apt_root))


def test_native_architecture_comes_from_dpkg(cache):
    assert cache.native_arch == "amd64"


def test_configured_architecture_wins(apt_root):
    cache = PackageCache.load(Settings.from_root(apt_root, architecture="arm64"))
    assert cache.native_arch == "arm64"
    assert ("bar", "arm64") in cache


def test_packages_in_first_seen_order(cache):
    assert [p.name for p in cache] == ["dpkg", "foo", "bar", "baz", "old", "qux"]
    assert [p.name for p in cache.sorted_packages()] == ["bar", "baz", "dpkg", "foo", "old", "qux"]


def test_arch_all_is_stored_as_native(cache):
    assert ("bar", "amd64") in cache
    assert ("qux", "amd64") in cache
    assert ("qux", "all") not in cache


def test_installed_version_is_merged_with_the_archive(cache):
    foo = cache["foo", "amd64"]

    assert [v.version for v in foo.versions] == ["1.2", "1.0"]
    assert foo.installed is foo.versions[1]
    assert [vf.file.archive for vf in foo.installed.files] == ["now", "stable"]
    assert foo.installed.downloadable


def test_status_only_package(cache):
    bar = cache["bar", "amd64"]
    assert len(bar.versions) == 1
    assert not bar.installed.downloadable


def test_dpkg_states(cache):
    baz = cache["baz", "amd64"]
    assert baz.held
    assert (baz.selection, baz.flag, baz.state) == (SelectionState.HOLD, InstallFlag.OK, CurrentState.INSTALLED)

    old = cache["old", "amd64"]
    assert old.installed is None
    assert old.state == CurrentState.CONFIG_FILES
    assert old.versions == []

    assert cache["qux", "amd64"].installed is None


def test_repository_file_attributes(cache):
    status, packages = cache.files

    assert status.not_source and status.archive == "now"
    assert packages.filename.endswith(f"{LIST_PREFIX}main_binary-amd64_Packages")
    assert packages.archive == "stable"
    assert packages.codename == "bookworm"
    assert packages.origin == "Debian"
    assert packages.site == "deb.debian.org"
    assert (packages.component, packages.architecture) == ("main", "amd64")
    assert not packages.not_automatic


def test_missing_status_file(tmp_path):
    with pytest.raises(CacheLoadError):
        PackageCache.load(Settings.from_root(tmp_path))


def test_missing_lists_directory(apt_root):
    lists = apt_root / "var/lib/apt/lists"
    for path in lists.iterdir():
        path.unlink()
    lists.rmdir()

    cache = PackageCache.load(Settings.from_root(apt_root))
    assert len(cache.files) == 1
    assert not cache["foo", "amd64"].installed.downloadable


def test_compressed_lists_are_read(apt_root):
    lists = apt_root / "var/lib/apt/lists"
    plain = lists / f"{LIST_PREFIX}main_binary-amd64_Packages"
    with gzip.open(plain.with_name(plain.name + ".gz"), "wt") as f:
        f.write(plain.read_text())
    plain.unlink()

    cache = PackageCache.load(Settings.from_root(apt_root))
    assert [v.version for v in cache["foo", "amd64"].versions] == ["1.2", "1.0"]
    assert cache.files[1].archive == "stable"


def test_unsupported_compression_is_skipped(apt_root, caplog):
    lists = apt_root / "var/lib/apt/lists"
    plain = lists / f"{LIST_PREFIX}main_binary-amd64_Packages"
    plain.rename(plain.with_name(plain.name + ".zst"))

    cache = PackageCache.load(Settings.from_root(apt_root))
    assert len(cache.files) == 1
    assert "unsupported compression" in caplog.text


@pytest.mark.parametrize(
    "status,expected",
    [
        ("install ok installed", (SelectionState.INSTALL, InstallFlag.OK, CurrentState.INSTALLED)),
        (
            "hold reinstreq half-installed",
            (SelectionState.HOLD, InstallFlag.REINST_REQUIRED, CurrentState.HALF_INSTALLED),
        ),
        ("purge ok not-installed", (SelectionState.PURGE, InstallFlag.OK, CurrentState.NOT_INSTALLED)),
    ],
)
def test_parse_status(status, expected):
    assert parse_status(status) == expected


@pytest.mark.parametrize("status", ["", "install ok", "install bogus installed", "want ok installed"])
def test_parse_bad_status(status):
    with pytest.raises(CacheLoadError):
        parse_status(status)


class TestResolve:
    def test_exact_name(self, cache):
        kind, matches = cache.resolve("foo")
        assert kind == MatchKind.NAME
        assert [p.name for p in matches] == ["foo"]

    def test_name_with_architecture(self, cache):
        assert cache.resolve("foo:amd64")[1] == [cache["foo", "amd64"]]
        assert cache.resolve("foo:i386") == (MatchKind.NAME, [])

    def test_glob(self, cache):
        kind, matches = cache.resolve("ba?")
        assert kind == MatchKind.GLOB
        assert [p.name for p in matches] == ["bar", "baz"]

    def test_regex(self, cache):
        kind, matches = cache.resolve("^(foo|qux)$")
        assert kind == MatchKind.REGEX
        assert [p.name for p in matches] == ["foo", "qux"]

    def test_glob_without_matches_falls_through_to_regex(self, cache):
        kind, matches = cache.resolve("q.*")
        assert kind == MatchKind.REGEX
        assert [p.name for p in matches] == ["qux"]

    def test_invalid_regex(self, cache):
        assert cache.resolve("foo[") == (MatchKind.REGEX, [])

    def test_unknown_name(self, cache):
        assert cache.resolve("nothing") == (MatchKind.NAME, [])


def test_invalid_version_in_a_list_is_skipped(apt_root, caplog):
    packages = apt_root / "var/lib/apt/lists" / f"{LIST_PREFIX}main_binary-amd64_Packages"
    packages.write_text(packages.read_text() + "\nPackage: broken\nVersion: 1.0_beta\nArchitecture: amd64\n")

    cache = PackageCache.load(Settings.from_root(apt_root))

    assert ("broken", "amd64") not in cache
    assert [v.version for v in cache["foo", "amd64"].versions] == ["1.2", "1.0"]
    assert "1.0_beta" in caplog.text


def test_invalid_installed_version_fails_the_load(apt_root):
    status = apt_root / "var/lib/dpkg/status"
    status.write_text(status.read_text() + "\nPackage: broken\nStatus: install ok installed\nVersion: 1.0_beta\n")

    with pytest.raises(CacheLoadError):
        PackageCache.load(Settings.from_root(apt_root))


def test_corrupt_xz_list_is_skipped(apt_root, caplog):
    lists = apt_root / "var/lib/apt/lists"
    plain = lists / f"{LIST_PREFIX}main_binary-amd64_Packages"
    plain.with_name(plain.name + ".xz").write_bytes(b"\xfd7zXZ\x00 not really xz")
    plain.unlink()

    cache = PackageCache.load(Settings.from_root(apt_root))

    assert not cache["foo", "amd64"].installed.downloadable
    assert "Could not read package list" in caplog.text


def test_release_version_is_recorded(apt_root):
    release = apt_root / "var/lib/apt/lists" / f"{LIST_PREFIX}InRelease"
    release.write_text(release.read_text() + "Version: 12.5\n")

    cache = PackageCache.load(Settings.from_root(apt_root))

    assert cache.files[1].version == "12.5"
