"""AWS client factories with dependency injection.

Every call site opens a fresh client through a factory:

    async with self.ec2() as ec2:
        await ec2.describe_instances()

Nothing is pooled or shared between operations besides the aioboto3 session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any

import aioboto3
from injector import Binder, Module, provider, singleton

from .config import RunnerConfig

if TYPE_CHECKING:
    from types_aiobotocore_ec2 import EC2Client
    from types_aiobotocore_ssm import SSMClient


# =============================================================================
# Client Type
# =============================================================================

type Client[T] = Callable[[], AbstractAsyncContextManager[T]]
"""Factory that returns an async context manager for a client."""

# =============================================================================
# Wrapper Classes for DI (each needs a unique type)
# =============================================================================


class EC2ClientFactory:
    """Wrapper for EC2 client factory."""

    def __init__(self, factory: Callable[[], AbstractAsyncContextManager[Any]]) -> None:
        self._factory = factory

    def __call__(self) -> AbstractAsyncContextManager[EC2Client]:
        return self._factory()


class SSMClientFactory:
    """Wrapper for SSM client factory."""

    def __init__(self, factory: Callable[[], AbstractAsyncContextManager[Any]]) -> None:
        self._factory = factory

    def __call__(self) -> AbstractAsyncContextManager[SSMClient]:
        return self._factory()


def _session_factory(
    session: aioboto3.Session,
    service: str,
    region: str | None,
) -> Client[Any]:
    @asynccontextmanager
    async def factory() -> AsyncIterator[Any]:
        async with session.client(service, region_name=region) as client:  # type: ignore[reportGeneralTypeIssues]
            yield client
    return factory


# =============================================================================
# Modules
# =============================================================================


class RunnerModule(Module):
    """Binds the configuration of the current invocation."""

    def __init__(self, config: RunnerConfig) -> None:
        self._config = config

    def configure(self, binder: Binder) -> None:
        binder.bind(RunnerConfig, to=self._config)


class AWSModule(Module):
    """DI module that provides AWS client factories.

    Usage:
        >>> from injector import Injector
        >>> injector = Injector([RunnerModule(config), AWSModule()])
        >>> orchestrator = injector.get(InstanceOrchestrator)
    """

    @singleton
    @provider
    def provide_session(self) -> aioboto3.Session:
        """Provide singleton aioboto3 session."""
        return aioboto3.Session()

    @singleton
    @provider
    def provide_ec2(self, session: aioboto3.Session, config: RunnerConfig) -> EC2ClientFactory:
        """Provide EC2 client factory."""
        return EC2ClientFactory(_session_factory(session, "ec2", config.region))

    @singleton
    @provider
    def provide_ssm(self, session: aioboto3.Session, config: RunnerConfig) -> SSMClientFactory:
        """Provide SSM client factory."""
        return SSMClientFactory(_session_factory(session, "ssm", config.region))


__all__ = [
    "AWSModule",
    "Client",
    "EC2ClientFactory",
    "RunnerModule",
    "SSMClientFactory",
]
