from os import getenv
from pathlib import Path

PROG_NAME = "apt-show-versions"
VERSION = "0.30"

# alternate filesystem root, like APT's Dir option; used for chroots and tests
ROOT_DIR = Path(getenv("APT_SHOW_VERSIONS_ROOT", "/"))

# default locations, relative to the root
STATUS_FILE = "var/lib/dpkg/status"
LISTS_DIR = "var/lib/apt/lists"
SOURCE_LIST = "etc/apt/sources.list"
SOURCE_PARTS = "etc/apt/sources.list.d"
PREFERENCES = "etc/apt/preferences"
PREFERENCES_PARTS = "etc/apt/preferences.d"

# pin priorities APT assigns when nothing else is configured
STATUS_PRIORITY = 100
DEFAULT_PRIORITY = 500
NOT_AUTOMATIC_PRIORITY = 1
BUT_AUTOMATIC_UPGRADES_PRIORITY = 100
DOWNGRADE_PRIORITY = 1000

# compression suffixes apt may leave on files in the lists directory
LIST_SUFFIXES = (".gz", ".xz", ".lz4", ".bz2", ".zst")
