# stale_scanner/manifest.py
"""
Direct-dependency detection from project manifests (Gemfile / Gemfile.lock,
package.json). Each manifest is read at most once per scan.
"""
import re
import json
import logging
import threading
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# gem 'rails' / gem "pg", '~> 1.5' / gem('puma')
GEM_DECLARATION_PATTERN = re.compile(r'''^\s*gem\s*\(?\s*(["'])([^"']+)\1''')
# "  rails (~> 7.1)" or "  my_engine!" under DEPENDENCIES in Gemfile.lock
LOCK_DEPENDENCY_PATTERN = re.compile(r'^  ([^\s!(]+)!?(?:\s|$)')

PACKAGE_DEPENDENCY_GROUPS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")


class ManifestClassifier:
    """Answers "is this name declared directly by the project?"."""

    def __init__(self):
        self._names: Union[frozenset[str], None] = None
        self._lock = threading.Lock()

    @property
    def names(self) -> frozenset[str]:
        with self._lock:
            if self._names is None:
                self._names = frozenset(self._load())
                logger.debug(f"{type(self).__name__}: {len(self._names)} direct dependencies")
            return self._names

    def is_direct(self, name: str) -> bool:
        return name in self.names

    def _load(self) -> set[str]:
        raise NotImplementedError


class GemManifest(ManifestClassifier):
    def __init__(self, project_path: Union[str, Path]):
        super().__init__()
        self.gemfile_path = Path(project_path) / "Gemfile"
        self.lockfile_path = Path(project_path) / "Gemfile.lock"

    def _load(self) -> set[str]:
        return self._parse_gemfile() | self._parse_lockfile()

    def _parse_gemfile(self) -> set[str]:
        names = set()
        if not self.gemfile_path.is_file():
            return names
        try:
            content = self.gemfile_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {self.gemfile_path}: {e}")
            return names
        for line in content.splitlines():
            match = GEM_DECLARATION_PATTERN.match(line)
            # Interpolated names cannot be resolved from text; Gemfile.lock covers them
            if match and "#{" not in match.group(2):
                names.add(match.group(2).strip())
        return names

    def _parse_lockfile(self) -> set[str]:
        names = set()
        if not self.lockfile_path.is_file():
            return names
        try:
            content = self.lockfile_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {self.lockfile_path}: {e}")
            return names
        in_dependencies = False
        for line in content.splitlines():
            if line.strip() == "DEPENDENCIES" and not line.startswith(" "):
                in_dependencies = True
                continue
            if not in_dependencies:
                continue
            if not line.startswith("  "):
                break
            match = LOCK_DEPENDENCY_PATTERN.match(line)
            if match:
                names.add(match.group(1))
        return names


class PackageManifest(ManifestClassifier):
    def __init__(self, project_path: Union[str, Path]):
        super().__init__()
        self.package_json_path = Path(project_path) / "package.json"

    def _load(self) -> set[str]:
        names = set()
        if not self.package_json_path.is_file():
            return names
        try:
            data = json.loads(self.package_json_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Could not parse {self.package_json_path}: {e}. Treating every package as transitive.")
            return names
        if not isinstance(data, dict):
            return names
        for group in PACKAGE_DEPENDENCY_GROUPS:
            declared = data.get(group)
            if isinstance(declared, dict):
                names.update(declared.keys())
        return names
