"""
Test fixtures and helpers for WingetWizard tests.

Provides:
- Recorded winget output samples
- FakeRunner (scripted winget process results)
- FakeProvider (scripted AI provider)
- Record and credential builders
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple, Union
from unittest.mock import MagicMock

from wingetwizard.credentials import ProviderCredential, ProviderKind
from wingetwizard.ai.providers.base import TextProvider
from wingetwizard.models import PackageRecord
from wingetwizard.winget.runner import CommandResult, validate_arguments


# =============================================================================
# Recorded winget output
# =============================================================================

LIST_OUTPUT = (
    "\r   - \r   \\ \r\n"
    "Name                       Id                        Version        Available  Source\n"
    "--------------------------------------------------------------------------------------\n"
    "Git                        Git.Git                   2.40.0         2.45.1     winget\n"
    "Microsoft Edge             Microsoft.Edge            125.0.2535.51             winget\n"
    "7-Zip 23.01 (x64)          7zip.7zip                 23.01                     winget\n"
    "Windows Terminal           9N0DX20HK701              1.19.10573.0              msstore\n"
    "Some Local Tool            ARP\\Machine\\X64\\LocalTool 1.0\n"
)

# Rows that can never be parsed, interleaved with valid ones
LIST_OUTPUT_WITH_NOISE = (
    "Name                       Id                        Version        Available  Source\n"
    "--------------------------------------------------------------------------------------\n"
    "Git                        Git.Git                   2.40.0         2.45.1     winget\n"
    "garbage\n"
    "Only  Two\n"
    "Microsoft Edge             Microsoft.Edge            125.0.2535.51             winget\n"
    "3 packages listed.\n"
)

UPGRADE_OUTPUT = (
    "Name               Id                    Version       Available     Source\n"
    "----------------------------------------------------------------------------\n"
    "Git                Git.Git               2.40.0        2.45.1        winget\n"
    "Mozilla Firefox    Mozilla.Firefox       124.0         125.0.3       winget\n"
    "Microsoft Edge     Microsoft.Edge        125.0                       winget\n"
    "Broken Row\n"
    "2 upgrades available.\n"
    "\n"
    "The following packages have an upgrade available, but require explicit targeting for upgrade:\n"
    "Name               Id                    Version       Available     Source\n"
    "----------------------------------------------------------------------------\n"
    "Discord            Discord.Discord       1.0.9030      1.0.9040      winget\n"
)

SEARCH_OUTPUT = (
    "Name                 Id                              Version    Match            Source\n"
    "---------------------------------------------------------------------------------------\n"
    "Git                  Git.Git                         2.45.1                      winget\n"
    "GitHub Desktop       GitHub.GitHubDesktop            3.3.12     Tag: git         winget\n"
    "Git  Extensions      GitExtensionsTeam.GitExtensions  4.2.1     Moniker: gitext  winget\n"
    "Windows Git Tool     9NBLGGH4NNS1                    Unknown                     msstore\n"
)

SHOW_OUTPUT = (
    "Found Git [Git.Git]\n"
    "Version: 2.45.1\n"
    "Publisher: The Git Development Community\n"
    "Publisher Url: https://gitforwindows.org\n"
    "Moniker: git\n"
    "Description: Git for Windows focuses on offering a lightweight, native set of tools\n"
    "  that bring the full feature set of the Git SCM to Windows.\n"
    "Homepage: https://gitforwindows.org\n"
    "License: GNU General Public License v2.0\n"
    "Tags:\n"
    "  bash\n"
    "  git\n"
    "  vcs\n"
    "Installer:\n"
    "  Installer Type: inno\n"
    "  Installer Url: https://github.com/git-for-windows/git/releases/download/Git-2.45.1-64-bit.exe\n"
)


# =============================================================================
# Fake winget runner
# =============================================================================

Scripted = Union[CommandResult, Exception]


class FakeRunner:
    """
    Fake WingetRunner that returns scripted results per verb, in order.
    Unscripted calls succeed with empty output.

    Arguments are still checked against the real allow-list so tests catch
    commands the real runner would reject.
    """

    def __init__(self, available: bool = True):
        self.available = available
        self.calls: List[Tuple[str, List[str], Optional[float]]] = []
        self._scripts: Dict[str, List[Scripted]] = defaultdict(list)

    def queue(self, verb: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        """Queue a process result for the next call of a verb."""
        self._scripts[verb].append(
            CommandResult(args=["winget", verb], returncode=returncode, stdout=stdout, stderr=stderr)
        )

    def queue_error(self, verb: str, error: Exception) -> None:
        """Queue an exception for the next call of a verb."""
        self._scripts[verb].append(error)

    def run(self, verb: str, arguments=(), timeout: Optional[float] = None) -> CommandResult:
        args = [a for a in arguments if a]
        validate_arguments(verb, args)
        self.calls.append((verb, args, timeout))

        script = self._scripts.get(verb)
        if not script:
            return CommandResult(args=["winget", verb, *args], returncode=0, stdout="", stderr="")
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def is_available(self) -> bool:
        return self.available

    def calls_for(self, verb: str) -> List[List[str]]:
        return [args for v, args, _ in self.calls if v == verb]


# =============================================================================
# Fake AI provider
# =============================================================================

class FakeProvider(TextProvider):
    """
    Scripted text provider.

    Either returns `responses` in order (the last one repeats) or asks
    `responder(prompt)`. An Exception in place of a response is raised.
    """

    def __init__(
        self,
        provider_id: str = "fake",
        responses: Optional[List[Union[str, Exception]]] = None,
        responder: Optional[Callable[[str], str]] = None,
    ):
        super().__init__(make_credential(ProviderKind.ANTHROPIC), session=MagicMock())
        self.provider_id = provider_id
        self.responses = list(responses or [])
        self.responder = responder
        self.calls: List[Tuple[str, int]] = []

    def generate_text(self, prompt: str, max_tokens: int) -> str:
        self.calls.append((prompt, max_tokens))
        if self.responder is not None:
            result: Union[str, Exception] = self.responder(prompt)
        elif self.responses:
            result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        else:
            result = f"{self.provider_id} text"
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def call_count(self) -> int:
        return len(self.calls)


# =============================================================================
# Builders
# =============================================================================

def make_record(
    package_id: str = "Git.Git",
    name: Optional[str] = None,
    installed: str = "2.40.0",
    available: str = "2.45.1",
    source: str = "winget",
) -> PackageRecord:
    """Build a PackageRecord with sensible defaults."""
    return PackageRecord(
        name=name or package_id.split(".")[-1],
        id=package_id,
        installed_version=installed,
        available_version=available,
        source=source,
    )


_DEFAULT_SECRETS = {
    ProviderKind.ANTHROPIC: {"api_key": "sk-ant-" + "a" * 60},
    ProviderKind.PERPLEXITY: {"api_key": "pplx-" + "p" * 45},
    ProviderKind.BEDROCK: {
        "access_key": "AKIA" + "X" * 16,
        "secret_key": "s" * 40,
        "region": "us-east-1",
    },
}


def make_credential(kind: ProviderKind = ProviderKind.ANTHROPIC, **overrides) -> ProviderCredential:
    """Build a ready ProviderCredential; keyword overrides replace fields."""
    values = dict(_DEFAULT_SECRETS[ProviderKind(kind)])
    values.update(overrides)
    return ProviderCredential(provider_kind=kind, **values)


def make_response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = json_data
    return response
