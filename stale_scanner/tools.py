# stale_scanner/tools.py
"""
Exit-code conventions of the package-manager commands we drive.

These tools do not follow the usual "non-zero means failure" rule, so each one
gets a policy entry describing which statuses mean "clean" and which mean
"ran fine, found something". Adding a backend is a matter of adding an entry.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from .errors import Outcome, ToolFailed, ToolUnavailable
from .runner import CommandResult, run_command

logger = logging.getLogger(__name__)

Runner = Callable[[list[str], Union[str, Path]], CommandResult]


@dataclass(frozen=True)
class ToolPolicy:
    name: str
    command: tuple[str, ...]
    success_codes: frozenset[int]
    findings_codes: frozenset[int] = frozenset()
    # Any exit status counts as findings as long as the tool printed something
    output_means_findings: bool = False
    # Missing executable skips the check instead of failing it
    optional: bool = False
    install_hint: str = ""


BUNDLE_AUDIT = "bundle-audit"
BUNDLE_OUTDATED = "bundle-outdated"
NPM_AUDIT = "npm-audit"
NPM_OUTDATED = "npm-outdated"
YARN_AUDIT = "yarn-audit"
YARN_OUTDATED = "yarn-outdated"

TOOL_POLICIES: dict[str, ToolPolicy] = {
    BUNDLE_AUDIT: ToolPolicy(
        name=BUNDLE_AUDIT,
        command=("bundle-audit", "check"),
        success_codes=frozenset({0}),
        findings_codes=frozenset({1}),
        optional=True,
        install_hint="gem install bundler-audit",
    ),
    BUNDLE_OUTDATED: ToolPolicy(
        name=BUNDLE_OUTDATED,
        command=("bundle", "outdated", "--parseable"),
        success_codes=frozenset({0}),
        output_means_findings=True,
    ),
    NPM_AUDIT: ToolPolicy(
        name=NPM_AUDIT,
        command=("npm", "audit", "--json"),
        success_codes=frozenset({0}),
        findings_codes=frozenset({1}),
    ),
    NPM_OUTDATED: ToolPolicy(
        name=NPM_OUTDATED,
        command=("npm", "outdated", "--json"),
        success_codes=frozenset({0}),
        findings_codes=frozenset({1}),
    ),
    YARN_AUDIT: ToolPolicy(
        name=YARN_AUDIT,
        command=("yarn", "audit", "--json"),
        success_codes=frozenset({0}),
        # Bitmask of info(1), low(2), moderate(4), high(8), critical(16)
        findings_codes=frozenset(range(1, 32)),
    ),
    YARN_OUTDATED: ToolPolicy(
        name=YARN_OUTDATED,
        command=("yarn", "outdated"),
        success_codes=frozenset({0}),
        findings_codes=frozenset({1}),
    ),
}


def classify_exit(policy: ToolPolicy, result: CommandResult) -> Outcome:
    """Maps a finished command onto SUCCESS/FINDINGS, raising for anything else."""
    command = list(policy.command)
    if result.tool_missing:
        raise ToolUnavailable(command)
    if result.exit_status in policy.success_codes:
        return Outcome.SUCCESS
    if result.exit_status in policy.findings_codes:
        return Outcome.FINDINGS
    if policy.output_means_findings and result.stdout.strip():
        return Outcome.FINDINGS
    raise ToolFailed(command, result.exit_status, result.stdout, result.stderr)


def run_tool(tool: str, cwd: Union[str, Path], runner: Runner = run_command) -> tuple[Outcome, CommandResult]:
    policy = TOOL_POLICIES[tool]
    result = runner(list(policy.command), cwd)
    outcome = classify_exit(policy, result)
    logger.debug(f"{tool}: exit {result.exit_status} -> {outcome.value}")
    return outcome, result
