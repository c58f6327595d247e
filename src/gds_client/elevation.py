"""
Privilege elevation for administrative GDS calls.

The controller swaps the session identity to administrator credentials for
the duration of a privileged call and puts the previous identity back
afterwards. Admin credentials come from a CredentialProvider capability and
are cached only when the provider's grant asks for it; any failure to apply
them clears the cache so the next elevation asks the provider again.

Identities are compared with ``is``: two UserIdentity objects holding the
same username are still different identities here.
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from .audit_logger import AuditLogger
from .enums import ErrorCode, LogLevel
from .exceptions import PrivilegedOperationUnavailable, RemoteInvocationFault
from .models import CredentialGrant, UserIdentity
from .session import Session


@runtime_checkable
class CredentialProvider(Protocol):
    """Supplies administrator credentials on demand."""

    @abstractmethod
    async def acquire(self) -> CredentialGrant:
        ...


class StaticCredentialProvider:
    """Hands out one fixed identity, e.g. from configuration or the command line."""

    def __init__(self, identity: UserIdentity, cache: bool = True) -> None:
        self._identity = identity
        self._cache = cache
        self.acquire_count = 0

    async def acquire(self) -> CredentialGrant:
        self.acquire_count += 1
        return CredentialGrant(identity=self._identity, cache=self._cache)


class ElevationController:
    """
    Temporarily runs a session under administrator credentials.

    Usage::

        async with controller.elevated(session):
            await session.call_method(...)

    Nested elevation is not supported: elevating while already elevated is a
    no-op that hands back the identity captured by the outer elevation, and
    the first revert restores it.
    """

    COMPONENT = "ElevationController"

    def __init__(
        self,
        credential_provider: Optional[CredentialProvider] = None,
        preferred_locales: Optional[list[str]] = None,
        admin_identity: Optional[UserIdentity] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            credential_provider: Source of admin credentials; None means
                privileged operations are unavailable once nothing is cached
            preferred_locales: Locales passed along with every identity change
            admin_identity: Pre-cached admin identity
            logger: Optional audit logger
        """
        self._provider = credential_provider
        self._preferred_locales = list(preferred_locales or [])
        self._admin_identity = admin_identity
        # identity applied by the last elevate; equals _admin_identity when cached
        self._elevated_identity: Optional[UserIdentity] = None
        self._original_identity: Optional[UserIdentity] = None
        self._logger = logger

    @property
    def has_cached_credentials(self) -> bool:
        return self._admin_identity is not None

    @property
    def credential_provider(self) -> Optional[CredentialProvider]:
        return self._provider

    @credential_provider.setter
    def credential_provider(self, provider: Optional[CredentialProvider]) -> None:
        self._provider = provider

    def is_elevated(self, session: Session) -> bool:
        current = session.identity
        return current is not None and (
            current is self._admin_identity or current is self._elevated_identity
        )

    async def elevate(self, session: Session) -> Optional[UserIdentity]:
        """
        Switch the session to the admin identity.

        Returns:
            The identity to hand back to revert()

        Raises:
            PrivilegedOperationUnavailable: No credentials could be obtained,
                or the server rejected them
            GDSConnectionError: The session was lost while switching identity
        """
        current = session.identity

        if self.is_elevated(session):
            self._log(LogLevel.DEBUG, "Session already elevated", {})
            return self._original_identity if self._original_identity is not None else current

        if self._admin_identity is not None:
            new_identity = self._admin_identity
        else:
            new_identity = await self._acquire()

        try:
            await session.update_identity(new_identity, self._preferred_locales)
        except RemoteInvocationFault as e:
            self._admin_identity = None
            self._elevated_identity = None
            self._log_error("Admin credentials rejected", e)
            raise PrivilegedOperationUnavailable(
                code=ErrorCode.CREDENTIALS_REJECTED.value,
                message=f"Administrator credentials could not be applied: {e}",
                details={"username": new_identity.username},
            ) from e
        except Exception as e:
            self._admin_identity = None
            self._elevated_identity = None
            self._log_error("Could not apply admin credentials", e)
            raise

        self._elevated_identity = new_identity
        self._original_identity = current
        self._log(LogLevel.INFO, "Elevated session to admin identity", {"username": new_identity.username})
        return current

    async def _acquire(self) -> UserIdentity:
        if self._provider is None:
            raise PrivilegedOperationUnavailable(
                code=ErrorCode.NO_CREDENTIAL_PROVIDER.value,
                message="The operation requires administrator credentials.",
            )

        grant = await self._provider.acquire()
        if grant.cache:
            self._admin_identity = grant.identity
        return grant.identity

    async def revert(self, session: Session, previous: Optional[UserIdentity]) -> None:
        """
        Restore the identity held before elevate().

        Only acts while the session still runs under the identity this
        controller applied. Failures are logged, never raised.
        """
        try:
            if previous is None or previous is session.identity or not self.is_elevated(session):
                return
            await session.update_identity(previous, self._preferred_locales)
            self._elevated_identity = None
            self._original_identity = None
            self._log(LogLevel.INFO, "Reverted session to previous identity", {"username": previous.username})
        except Exception as e:
            self._log_error("Error reverting to normal permissions", e)

    @asynccontextmanager
    async def elevated(self, session: Session) -> AsyncIterator[Optional[UserIdentity]]:
        """Elevate for the duration of the block; revert runs even if the block raises."""
        previous = await self.elevate(session)
        try:
            yield previous
        finally:
            await self.revert(session, previous)

    def clear_cached_credentials(self) -> None:
        self._admin_identity = None

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, error)
