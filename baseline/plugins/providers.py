"""Built-in git hosting providers.

Pull requests are created through each host's official CLI, which must be
installed and authenticated separately.
"""

import re
from pathlib import Path
from typing import ClassVar, Optional

from baseline.core.errors import CommandError
from baseline.models.plugin import PluginMetadata, PluginType
from baseline.utils.process import ProcessTimeout, run_process
from .base import ProviderPlugin


class HostedProvider(ProviderPlugin):
    """Provider for a single host name, creating PRs via a CLI."""

    host: ClassVar[str]
    cli: ClassVar[str]
    cli_version_args: ClassVar[list[str]] = ["--version"]
    cli_install_hint: ClassVar[str] = ""

    def matches_url(self, url: str) -> bool:
        pattern = rf"^(https?://)?(www\.)?{re.escape(self.host)}/[\w.-]+/[\w.-]+(\.git)?$"
        return re.match(pattern, url) is not None

    def get_repo_url_pattern(self) -> Optional[str]:
        return f"{self.host}/**"

    def get_git_url(self, owner: str, name: str) -> str:
        return f"https://{self.host}/{owner}/{name}.git"

    def pull_request_args(
        self,
        title: str,
        base: str,
        head: str,
        body: Optional[str],
        draft: bool
    ) -> list[str]:
        raise NotImplementedError

    async def create_pull_request(
        self,
        repo_path: str | Path,
        title: str,
        base: str,
        head: str,
        body: Optional[str] = None,
        draft: bool = False
    ) -> str:
        try:
            probe = await run_process([self.cli, *self.cli_version_args], timeout=5)
        except (OSError, ProcessTimeout):
            probe = None
        if probe is None or not probe.ok:
            raise CommandError(
                f"{self.metadata.name} CLI ({self.cli}) is not installed",
                command=self.cli,
                suggestion=self.cli_install_hint or None,
            )

        args = [self.cli, *self.pull_request_args(title, base, head, body, draft)]
        result = await run_process(args, cwd=repo_path)
        if not result.ok:
            raise CommandError(
                f"Failed to create pull request: {result.stderr.strip() or result.stdout.strip()}",
                repo=str(repo_path),
                command=" ".join(args),
                exit_code=result.return_code,
            )
        return result.stdout.strip()


class GitHubProvider(HostedProvider):
    metadata = PluginMetadata(
        id="github",
        name="GitHub",
        type=PluginType.PROVIDER,
        description="GitHub provider for PR creation and repository management",
        baseline_version="0.1.0",
    )
    host = "github.com"
    cli = "gh"
    cli_install_hint = "Install the GitHub CLI from https://cli.github.com/"

    def pull_request_args(self, title, base, head, body, draft):
        args = ["pr", "create", "--title", title, "--base", base, "--head", head]
        if body:
            args += ["--body", body]
        if draft:
            args.append("--draft")
        return args


class GitLabProvider(HostedProvider):
    metadata = PluginMetadata(
        id="gitlab",
        name="GitLab",
        type=PluginType.PROVIDER,
        description="GitLab provider for merge request creation and repository management",
        baseline_version="0.1.0",
    )
    host = "gitlab.com"
    cli = "glab"
    cli_install_hint = "Install the GitLab CLI from https://gitlab.com/gitlab-org/cli"

    def pull_request_args(self, title, base, head, body, draft):
        args = ["mr", "create", "--title", title, "--target-branch", base, "--source-branch", head]
        if body:
            args += ["--description", body]
        if draft:
            args.append("--draft")
        return args


class BitbucketProvider(HostedProvider):
    metadata = PluginMetadata(
        id="bitbucket",
        name="Bitbucket",
        type=PluginType.PROVIDER,
        description="Bitbucket provider for PR creation and repository management",
        baseline_version="0.1.0",
    )
    host = "bitbucket.org"
    cli = "bb"
    cli_version_args = ["version"]
    cli_install_hint = "Install the bb CLI or open the pull request at https://bitbucket.org"

    def pull_request_args(self, title, base, head, body, draft):
        # bb has no draft flag
        args = ["pr", "create", "--title", title, "--target", base, "--source", head]
        if body:
            args += ["--description", body]
        return args


BUILTIN_PROVIDER_PLUGINS: list[type[ProviderPlugin]] = [
    GitHubProvider,
    GitLabProvider,
    BitbucketProvider,
]
