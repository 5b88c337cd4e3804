"""Platform font enumeration and fuzzy font name matching.

A font catalog resolves a human readable font name ("Free Sans Bold") to a
font file. Two implementations exist: one asking fontconfig (`fc-list`) and
one scanning font directories with fontTools. `default_catalog` picks one for
the running platform.
"""

from __future__ import annotations

import logging
import os
import shutil
import struct
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from fontTools.ttLib import TTFont, TTLibError

from sdftext.errors import FontNotFoundError

logger = logging.getLogger(__name__)

FONT_FILE_SUFFIXES: Tuple[str, ...] = (".ttf", ".otf", ".ttc", ".otc")


###############################################################################
# FontEntry
###############################################################################
@dataclass(frozen=True)
class FontEntry:
    """
    One installed font.

    Attributes:
        key: Lower-case, trimmed name used for matching.
        name: Display name, "family style".
        path: Path of the font file.
    """

    key: str
    name: str
    path: Path

    @classmethod
    def create(cls, name: str, path: Path) -> FontEntry:
        """Create an entry and derive its key from `name`."""
        return cls(key=name.strip().lower(), name=name.strip(), path=Path(path))


###############################################################################
# Matching
###############################################################################
def match_font(entries: Sequence[FontEntry], name: str) -> FontEntry:
    """
    Find the entry best matching `name`.

    An exact (case-insensitive) key match wins. Otherwise every entry is scored by
    token overlap: each token of `name` found in the key contributes its length
    to the hits. The score is 0.25 if both have the same number of tokens plus
    0.75 * min(hits / letters_in_key, 1). The highest score wins, first on ties.

    Raises:
        FontNotFoundError: If no entry shares any token with `name`.
    """
    wanted = name.strip().lower()
    for entry in entries:
        if entry.key == wanted:
            return entry

    tokens = wanted.split()
    best: Optional[FontEntry] = None
    high_score = 0.0
    for entry in entries:
        hits = sum(len(token) for token in tokens if token in entry.key)
        if hits <= 0:
            continue
        key_tokens = entry.key.split()
        key_score = 0.25 if len(key_tokens) == len(tokens) else 0.0
        letters = len(entry.key) - (len(key_tokens) - 1)
        hit_score = 0.75 * min(hits / letters, 1.0) if letters > 0 else 0.0
        total_score = key_score + hit_score
        if total_score > high_score:
            high_score = total_score
            best = entry

    if best is None:
        raise FontNotFoundError(f"No installed font matches '{name}'")
    logger.debug("Font '%s' matched '%s' with score %.3f", name, best.name, high_score)
    return best


###############################################################################
# Catalogs
###############################################################################
class FontCatalog(Protocol):
    """Protocol for font catalogs."""

    def entries(self, force_refresh: bool = False) -> List[FontEntry]:
        """All installed fonts, cached after the first call."""

    def names(self, force_refresh: bool = False) -> List[str]:
        """Display names of all installed fonts."""

    def resolve(self, name: str) -> FontEntry:
        """Best matching entry for `name`.

        Raises:
            FontNotFoundError: If nothing matches.
        """


class _CachingCatalog:
    """Shared caching and matching logic. Subclasses implement `_scan`."""

    def __init__(self) -> None:
        self._entries: Optional[List[FontEntry]] = None

    def _scan(self) -> Iterable[FontEntry]:
        raise NotImplementedError

    def entries(self, force_refresh: bool = False) -> List[FontEntry]:
        if self._entries is None or force_refresh:
            unique: List[FontEntry] = []
            seen = set()
            for entry in self._scan():
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                unique.append(entry)
            self._entries = sorted(unique, key=lambda e: e.key)
            logger.debug("%s found %d fonts", type(self).__name__, len(self._entries))
        return self._entries

    def names(self, force_refresh: bool = False) -> List[str]:
        return [entry.name for entry in self.entries(force_refresh)]

    def resolve(self, name: str) -> FontEntry:
        return match_font(self.entries(), name)


class StaticFontCatalog(_CachingCatalog):
    """Catalog over a fixed list of entries."""

    def __init__(self, entries: Iterable[FontEntry]):
        super().__init__()
        self._static = list(entries)

    def _scan(self) -> Iterable[FontEntry]:
        return list(self._static)


class DirectoryFontCatalog(_CachingCatalog):
    """Scans directories recursively for font files and reads their names with fontTools."""

    def __init__(self, directories: Sequence[Path], suffixes: Tuple[str, ...] = FONT_FILE_SUFFIXES):
        super().__init__()
        self._directories = [Path(directory).expanduser() for directory in directories]
        self._suffixes = tuple(suffix.lower() for suffix in suffixes)

    @staticmethod
    def read_font_name(path: Path) -> str:
        """Return "family style" of a font file, empty string if the file has no usable name."""
        ttfont = TTFont(str(path), lazy=True, fontNumber=0)
        try:
            if "name" not in ttfont:
                return ""
            name_table = ttfont["name"]
            family = name_table.getDebugName(1) or ""
            style = name_table.getDebugName(2) or ""
        finally:
            ttfont.close()
        return f"{family} {style}".strip()

    def _scan(self) -> Iterable[FontEntry]:
        for directory in self._directories:
            if not directory.is_dir():
                continue
            for path in sorted(directory.rglob("*")):
                if path.suffix.lower() not in self._suffixes or not path.is_file():
                    continue
                try:
                    name = self.read_font_name(path)
                except (TTLibError, OSError, ValueError, KeyError, struct.error) as err:
                    logger.warning("Skipping unreadable font file %s: %s", path, err)
                    continue
                if name:
                    yield FontEntry.create(name, path)


class FontconfigCatalog(_CachingCatalog):
    """Lists installed fonts with fontconfig's `fc-list` (Linux and BSD)."""

    FORMAT = "%{file}|%{family[0]}|%{style[0]}\\n"

    def __init__(self, executable: str = "fc-list"):
        super().__init__()
        self._executable = executable

    @staticmethod
    def parse(output: str) -> List[FontEntry]:
        """Parse `fc-list` output lines of the form "file|family|style"."""
        result: List[FontEntry] = []
        for line in output.splitlines():
            parts = line.strip().split("|")
            if len(parts) != 3 or not parts[0]:
                continue
            path, family, style = parts
            if Path(path).suffix.lower() not in FONT_FILE_SUFFIXES:
                continue
            name = f"{family} {style}".strip()
            if name:
                result.append(FontEntry.create(name, Path(path)))
        return result

    def _scan(self) -> Iterable[FontEntry]:
        cmd = [self._executable, f"--format={self.FORMAT}"]
        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
        except (OSError, subprocess.CalledProcessError) as err:
            logger.warning("fc-list failed: %s", err)
            return []
        return self.parse(result.stdout.decode("utf-8", errors="replace"))


###############################################################################
# Platform selection
###############################################################################
def platform_font_directories(platform: Optional[str] = None) -> List[Path]:
    """Default font directories of a platform (`sys.platform` by default)."""
    platform = platform or sys.platform
    home = Path.home()
    if platform == "darwin":
        return [Path("/System/Library/Fonts"), Path("/Library/Fonts"), home / "Library" / "Fonts"]
    if platform.startswith("win"):
        windir = Path(os.environ.get("WINDIR", "C:\\Windows"))
        directories = [windir / "Fonts"]
        local = os.environ.get("LOCALAPPDATA")
        if local:
            directories.append(Path(local) / "Microsoft" / "Windows" / "Fonts")
        return directories
    if platform.startswith("android"):
        return [Path("/system/fonts")]
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        home / ".fonts",
        home / ".local" / "share" / "fonts",
    ]


def default_font_name(platform: Optional[str] = None) -> str:
    """Name of the font used when none is given."""
    platform = platform or sys.platform
    if platform == "darwin":
        return "Helvetica"
    if platform.startswith("win"):
        return "Arial"
    return "Roboto"


def default_catalog(platform: Optional[str] = None) -> FontCatalog:
    """Select a catalog implementation for the running platform."""
    platform = platform or sys.platform
    if platform.startswith(("linux", "freebsd", "openbsd")) and shutil.which("fc-list"):
        return FontconfigCatalog()
    return DirectoryFontCatalog(platform_font_directories(platform))
