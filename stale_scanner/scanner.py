# stale_scanner/scanner.py
import shutil
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from . import parser
from .config import Settings
from .enrichment import EnrichmentPool, ProgressCallback
from .errors import OutputMalformed, Outcome, StaleScanError, SubScanOutcome, ToolFailed, ToolUnavailable
from .manifest import GemManifest, PackageManifest
from .models import ScanIssue, ScanResult
from .registry_client import NpmRegistryClient, RegistryClient, RubyGemsClient
from .runner import run_command
from .tools import (
    BUNDLE_AUDIT, BUNDLE_OUTDATED, NPM_AUDIT, NPM_OUTDATED, TOOL_POLICIES,
    YARN_AUDIT, YARN_OUTDATED, Runner, run_tool,
)

logger = logging.getLogger(__name__)

# (exit classification of the tool run, parsed records)
CheckResult = tuple[Outcome, list]

GEMS = "gems"
PACKAGES = "packages"
VULNERABILITIES = "vulnerabilities"
VERSIONS = "versions"

GEM_LOCKFILE = "Gemfile.lock"
PACKAGE_MANIFEST = "package.json"


class PackageManager(Enum):
    NPM = "npm"
    YARN = "yarn"


def resolve_package_manager(choice: Union[str, PackageManager, None] = "auto", which: Callable = shutil.which) -> PackageManager:
    """Turns "auto"/"npm"/"yarn" into a concrete manager; auto prefers npm."""
    if isinstance(choice, PackageManager):
        return choice
    if choice and choice.lower() != "auto":
        return PackageManager(choice.lower())
    if which("npm"):
        return PackageManager.NPM
    if which("yarn"):
        return PackageManager.YARN
    return PackageManager.NPM


class Scanner:
    """
    Runs the gem phase and then the package phase for one project.
    Every check is independent: a skipped or failed check is recorded on the
    ScanResult and the remaining checks still run.
    """

    def __init__(
        self,
        project_path: Union[str, Path] = ".",
        settings: Optional[Settings] = None,
        package_manager: PackageManager = PackageManager.NPM,
        runner: Runner = run_command,
        progress: Optional[ProgressCallback] = None,
        gem_client: Optional[RegistryClient] = None,
        npm_client: Optional[RegistryClient] = None,
        which: Callable = shutil.which,
    ):
        self.project_path = Path(project_path)
        self.settings = settings or Settings()
        self.package_manager = package_manager
        self.runner = runner
        self.progress = progress
        self.which = which
        timeouts = {"connect_timeout": self.settings.connect_timeout, "read_timeout": self.settings.read_timeout}
        self.gem_client = gem_client or RubyGemsClient(self.settings.rubygems_url, **timeouts)
        self.npm_client = npm_client or NpmRegistryClient(self.settings.npm_registry_url, **timeouts)
        self.gem_manifest = GemManifest(self.project_path)
        self.package_manifest = PackageManifest(self.project_path)

    def has_gems(self) -> bool:
        return (self.project_path / GEM_LOCKFILE).is_file()

    def has_packages(self) -> bool:
        return (self.project_path / PACKAGE_MANIFEST).is_file()

    def scan(self, gems: bool = True, packages: bool = True) -> ScanResult:
        logger.info(f"Scanning project at: {self.project_path}")
        result = ScanResult()
        if gems:
            self.scan_gems(result)
        if packages:
            self.scan_packages(result)
        return result

    # --- Gem phase ---

    def scan_gems(self, result: ScanResult) -> None:
        if not self.has_gems():
            logger.info(f"No {GEM_LOCKFILE} in {self.project_path}; skipping Ruby gems.")
            return
        logger.info("Checking Ruby gems...")
        outcome = self._run_check(result, GEMS, VULNERABILITIES, BUNDLE_AUDIT, self.check_gem_vulnerabilities)
        result.gem_vulnerabilities.extend(outcome.records)
        outcome = self._run_check(result, GEMS, VERSIONS, BUNDLE_OUTDATED, self.check_gem_versions)
        result.gem_versions.extend(outcome.records)

    def check_gem_vulnerabilities(self) -> CheckResult:
        outcome, output = run_tool(BUNDLE_AUDIT, self.project_path, self.runner)
        return outcome, parser.parse_bundle_audit("\n".join((output.stdout, output.stderr)))

    def check_gem_versions(self) -> CheckResult:
        outcome, output = run_tool(BUNDLE_OUTDATED, self.project_path, self.runner)
        entries = parser.parse_bundle_outdated(output.stdout)
        return outcome, self._pool(self.gem_client, self.gem_manifest).enrich(entries)

    # --- Package phase ---

    def scan_packages(self, result: ScanResult) -> None:
        if not self.has_packages():
            logger.info(f"No {PACKAGE_MANIFEST} in {self.project_path}; skipping JavaScript packages.")
            return
        logger.info(f"Checking JavaScript packages with {self.package_manager.value}...")
        audit_tool = YARN_AUDIT if self.package_manager is PackageManager.YARN else NPM_AUDIT
        outcome = self._run_check(result, PACKAGES, VULNERABILITIES, audit_tool, self.check_package_vulnerabilities)
        result.package_vulnerabilities.extend(outcome.records)
        outdated_tool = YARN_OUTDATED if self.package_manager is PackageManager.YARN else NPM_OUTDATED
        outcome = self._run_check(result, PACKAGES, VERSIONS, outdated_tool, self.check_package_versions)
        result.package_versions.extend(outcome.records)

    def check_package_vulnerabilities(self) -> CheckResult:
        if self.package_manager is PackageManager.YARN:
            outcome, output = run_tool(YARN_AUDIT, self.project_path, self.runner)
            return outcome, parser.parse_yarn_audit(output.stdout)
        outcome, output = run_tool(NPM_AUDIT, self.project_path, self.runner)
        return outcome, parser.parse_npm_audit(output.stdout, TOOL_POLICIES[NPM_AUDIT].command)

    def check_package_versions(self) -> CheckResult:
        outcome, entries = self._outdated_packages()
        return outcome, self._pool(self.npm_client, self.package_manifest).enrich(entries)

    def _outdated_packages(self) -> CheckResult:
        if self.package_manager is PackageManager.NPM:
            try:
                outcome, output = run_tool(NPM_OUTDATED, self.project_path, self.runner)
                return outcome, parser.parse_npm_outdated(output.stdout, TOOL_POLICIES[NPM_OUTDATED].command)
            except ToolUnavailable:
                if not self.which("yarn"):
                    raise
                logger.info("npm not found; falling back to yarn outdated.")
        outcome, output = run_tool(YARN_OUTDATED, self.project_path, self.runner)
        return outcome, parser.parse_yarn_outdated(output.stdout)

    # --- Shared ---

    def _pool(self, client: RegistryClient, classifier) -> EnrichmentPool:
        return EnrichmentPool(client, classifier, max_workers=self.settings.max_workers, progress=self.progress)

    def _run_check(self, result: ScanResult, ecosystem: str, check: str, tool: str, func: Callable[[], CheckResult]) -> SubScanOutcome:
        outcome = run_check(tool, func)
        if outcome.completed:
            logger.debug(f"{ecosystem} {check}: {outcome.status.value}, {len(outcome.records)} records")
        elif outcome.status is Outcome.SKIPPED:
            hint = TOOL_POLICIES[tool].install_hint
            message = f"{tool} is not installed; {ecosystem} {check} check skipped."
            logger.warning(message)
            result.skipped.append(ScanIssue(ecosystem, check, message, f"Install with: {hint}" if hint else ""))
        else:
            logger.error(f"{ecosystem} {check} check failed: {outcome.error}")
            result.failures.append(ScanIssue(ecosystem, check, str(outcome.error), diagnostics_for(outcome.error)))
        return outcome


def run_check(tool: str, func: Callable[[], CheckResult]) -> SubScanOutcome:
    """
    Runs one sub-scan and folds its errors into a SubScanOutcome.
    The status is the tool's own exit classification, raised to FINDINGS when
    records were parsed from a run that exited as clean.
    """
    try:
        status, records = func()
    except ToolUnavailable as e:
        status = Outcome.SKIPPED if TOOL_POLICIES[tool].optional else Outcome.FAILED
        return SubScanOutcome(status, error=e)
    except (ToolFailed, OutputMalformed) as e:
        return SubScanOutcome(Outcome.FAILED, error=e)
    if records:
        status = Outcome.FINDINGS
    return SubScanOutcome(status, records=records)


def diagnostics_for(error: Optional[StaleScanError]) -> str:
    if isinstance(error, ToolFailed):
        return error.diagnostics
    if isinstance(error, OutputMalformed):
        return error.raw_output.strip()
    return ""
