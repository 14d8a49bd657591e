"""Boot script for the runner instance.

The script is passed as EC2 user data and run once, as root, by cloud-init on
first boot. It writes ``/setup-runner.sh``, which configures and starts the
GitHub Actions runner, and then runs it as the UID-1000 user when one exists.

When ``runner_home_dir`` is configured the runner (and its dependencies) is
expected to be pre-installed in the AMI, so the script only changes into that
directory; otherwise it downloads the runner release matching the CPU
architecture into ``~/actions-runner``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import DEFAULT_RUNNER_VERSION

if TYPE_CHECKING:
    from .config import RunnerConfig

SETUP_SCRIPT_PATH = "/setup-runner.sh"
RUNNER_DIR_NAME = "actions-runner"
RUNNER_RELEASES_URL = "https://github.com/actions/runner/releases/download"

# `uname -m` output -> actions/runner release architecture suffix
RUNNER_ARCHITECTURES: dict[str, str] = {
    "aarch64": "arm64",
    "amd64": "x64",
    "x86_64": "x64",
}


def runner_arch(machine: str) -> str | None:
    """Release suffix for a machine architecture, or None when unsupported."""
    return RUNNER_ARCHITECTURES.get(machine)


def runner_archive_name(version: str, arch: str) -> str:
    return f"actions-runner-linux-{arch}-{version}.tar.gz"


def runner_download_url(version: str, arch: str) -> str:
    return f"{RUNNER_RELEASES_URL}/v{version}/{runner_archive_name(version, arch)}"


def _arch_case() -> str:
    by_suffix: dict[str, list[str]] = {}
    for machine, suffix in RUNNER_ARCHITECTURES.items():
        by_suffix.setdefault(suffix, []).append(machine)
    arms = " ".join(
        f'{"|".join(machines)}) ARCH="{suffix}" ;;'
        for suffix, machines in by_suffix.items()
    )
    return f"case $(uname -m) in {arms} esac && export RUNNER_ARCH=${{ARCH}}"


def download_block(version: str = DEFAULT_RUNNER_VERSION) -> str:
    """Shell lines that fetch and unpack the runner release."""
    archive = runner_archive_name(version, "${RUNNER_ARCH}")
    url = runner_download_url(version, "${RUNNER_ARCH}")
    return "\n".join([
        _arch_case(),
        f"curl -O -L {url}",
        f"tar xzf ./{archive}",
    ])


def heredoc_marker(base: str, body: str) -> str:
    """Heredoc delimiter that no line of ``body`` equals.

    Starts from ``base`` and appends a counter until the marker is free, so a
    body holding its own ``EOF`` heredoc cannot end the enclosing one.
    """
    lines = set(body.splitlines())
    marker, n = base, 0
    while marker in lines:
        n += 1
        marker = f"{base}_{n}"
    return marker


def cd_home_dir(path: str) -> str:
    return f'cd "{path}"'


def _pre_runner_block(script: str) -> str:
    # Quoted heredoc: the snippet is written verbatim, with no expansion
    marker = heredoc_marker("PRE_RUNNER_SCRIPT", script)
    return "\n".join([
        f"cat << '{marker}' > pre-runner-script.sh",
        script,
        marker,
        "source pre-runner-script.sh",
    ])


def setup_script(config: RunnerConfig, registration_token: str, label: str) -> str:
    """Body of /setup-runner.sh: configure and start the runner."""
    lines: list[str] = []

    if config.runner_home_dir:
        lines.append(cd_home_dir(config.runner_home_dir))
    else:
        lines.append("cd ~")
        lines.append(f"mkdir -p {RUNNER_DIR_NAME} && cd {RUNNER_DIR_NAME}")

    if config.pre_runner_script:
        lines.append(_pre_runner_block(config.pre_runner_script))

    if not config.runner_home_dir:
        lines.append(download_block(config.runner_version))

    lines.extend([
        "export RUNNER_ALLOW_RUNASROOT=1",
        registration_command(config.repository_url, registration_token, label),
        "./run.sh",
    ])
    return "\n".join(lines)


def registration_command(repository_url: str, registration_token: str, label: str) -> str:
    return (
        f"./config.sh --url {repository_url} "
        f"--token {registration_token} --labels {label}"
    )


def build_user_data(config: RunnerConfig, registration_token: str, label: str) -> str:
    """Render the user data script for a new runner instance.

    Args:
        config: Runner configuration (repository, home dir, pre-runner script).
        registration_token: GitHub runner registration token.
        label: Label the runner registers with.

    Returns:
        Plain-text bash script. botocore base64-encodes it on submission.
    """
    script = setup_script(config, registration_token, label)
    marker = heredoc_marker("EOF", script)
    return f"""#!/bin/bash
cat << '{marker}' > {SETUP_SCRIPT_PATH}
{script}
{marker}

chmod +x {SETUP_SCRIPT_PATH}
USER_1000=$(getent passwd "1000" | cut -d: -f1)
if [ -z "$USER_1000" ]; then
  echo "No user with UID 1000 found. Running as root."
  {SETUP_SCRIPT_PATH}
else
  su - $USER_1000 -c "{SETUP_SCRIPT_PATH}"
fi
"""


__all__ = [
    "RUNNER_ARCHITECTURES",
    "build_user_data",
    "cd_home_dir",
    "download_block",
    "heredoc_marker",
    "registration_command",
    "runner_arch",
    "runner_download_url",
    "setup_script",
]
