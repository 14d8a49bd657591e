"""GitHub REST API client for self-hosted runners.

Covers the calls around the EC2 lifecycle: fetching a registration token
before launch, waiting for the runner to come online, and removing the runner
when its instance is terminated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from injector import NoInject, inject
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from .config import RunnerConfig
from .exceptions import GitHubAPIError, RunnerRegistrationError

API_VERSION = "2022-11-28"
REQUEST_TIMEOUT = 30.0


class _RunnerNotOnlineError(Exception):
    """Runner not registered or still offline - retry."""


def _is_transient(e: BaseException) -> bool:
    return isinstance(e, GitHubAPIError) and e.transient


@dataclass(frozen=True, slots=True)
class Runner:
    """Self-hosted runner as reported by GitHub."""

    id: int
    name: str
    status: str
    labels: tuple[str, ...] = ()
    busy: bool = False

    @property
    def online(self) -> bool:
        return self.status == "online"

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Runner:
        return cls(
            id=raw["id"],
            name=raw.get("name", ""),
            status=raw.get("status", ""),
            labels=tuple(label["name"] for label in raw.get("labels", [])),
            busy=raw.get("busy", False),
        )


@inject
@dataclass
class GitHubClient:
    """Runner endpoints of the repository in ``config``.

    Args:
        config: Repository, token and API URL.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    config: RunnerConfig
    transport: NoInject[httpx.AsyncBaseTransport | None] = field(default=None, repr=False)

    @property
    def _runners_path(self) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}/actions/runners"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.github_api_url,
            headers={
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=REQUEST_TIMEOUT,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, context: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{context}: {type(e).__name__}: {e}")
            raise GitHubAPIError(None, str(e) or type(e).__name__, context) from e
        if response.is_error:
            logger.error(f"{context}: GitHub API returned {response.status_code}")
            raise GitHubAPIError(response.status_code, response.text, context)
        return response

    async def get_registration_token(self) -> str:
        """Fetch a short-lived runner registration token."""
        response = await self._request(
            "POST",
            f"{self._runners_path}/registration-token",
            "GitHub Registration Token receiving error",
        )
        logger.info("GitHub Registration Token is received")
        return response.json()["token"]

    async def list_runners(self) -> list[Runner]:
        response = await self._request(
            "GET",
            self._runners_path,
            "GitHub self-hosted runners listing error",
            params={"per_page": 100},
        )
        return [Runner.from_api(raw) for raw in response.json().get("runners", [])]

    async def get_runner(self, label: str) -> Runner | None:
        """First runner carrying ``label``, or None."""
        for runner in await self.list_runners():
            if label in runner.labels:
                return runner
        return None

    async def wait_for_runner_registered(self, label: str) -> Runner:
        """Poll until the runner with ``label`` is online.

        Transient API failures (5xx, no response) are retried like an offline
        runner.

        Raises:
            RunnerRegistrationError: If it is not online within
                ``config.registration_timeout`` seconds.
            GitHubAPIError: On a non-transient API failure, or a transient one
                still failing at the timeout.
        """
        timeout = self.config.registration_timeout
        logger.info(f"Waiting for the GitHub runner with label {label} to be registered")

        @retry(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.config.registration_interval),
            retry=(
                retry_if_exception_type(_RunnerNotOnlineError)
                | retry_if_exception(_is_transient)
            ),
            reraise=True,
        )
        async def _check() -> Runner:
            runner = await self.get_runner(label)
            if runner is None or not runner.online:
                raise _RunnerNotOnlineError()
            return runner

        try:
            runner = await _check()
        except _RunnerNotOnlineError:
            logger.error(f"GitHub self-hosted runner registration error after {timeout}s")
            raise RunnerRegistrationError(label, timeout) from None

        logger.info(f"GitHub self-hosted runner {runner.name} is registered and ready to use")
        return runner

    async def remove_runner(self, label: str) -> None:
        """Remove the runner with ``label``. A missing runner is not an error."""
        runner = await self.get_runner(label)
        if runner is None:
            logger.info(
                f"GitHub self-hosted runner with label {label} is not found, "
                "so the removal is skipped"
            )
            return

        await self._request(
            "DELETE",
            f"{self._runners_path}/{runner.id}",
            "GitHub self-hosted runner removal error",
        )
        logger.info(f"GitHub self-hosted runner {runner.name} is removed")
