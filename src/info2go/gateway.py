"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider gateway: one uniform generate/validate surface over the active provider.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .errors import ConfigurationError, ErrorKind, ProviderError
from .providers.contracts import ContentProvider
from .providers.registry import ensure_default_providers, get_provider
from .runtime.timeouts import await_with_timeout
from .settings import ProviderConfig
from .types import CredentialStatus

logger = logging.getLogger("info2go.gateway")

ProviderLookup = Callable[[str], ContentProvider]


def _default_lookup(provider_id: str) -> ContentProvider:
    ensure_default_providers()
    return get_provider(provider_id)


class ProviderGateway:
    """
    Routes generation and credential checks to the configured provider.

    Every call carries a deadline of `request_timeout_s`; an overrun is
    reported as `NETWORK_UNAVAILABLE`, the same as a transport failure.

    An `INVALID_CREDENTIAL` failure for the configured credential latches
    `credential_rejected` until `configure` installs new settings.

    Args:
        config: Active provider selection and credential.
        request_timeout_s: Per-call deadline, ``None`` disables it.
        provider_lookup: Resolves a provider id to an adapter. Defaults to
            the global registry with the built-in providers installed.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        request_timeout_s: float | None = 30.0,
        provider_lookup: ProviderLookup | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._request_timeout_s = request_timeout_s
        self._lookup = provider_lookup or _default_lookup
        self._credential_rejected = False

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def provider_id(self) -> str:
        return self._config.active_provider_id.strip().lower()

    @property
    def credential_rejected(self) -> bool:
        return self._credential_rejected

    @property
    def can_fetch(self) -> bool:
        """A credential is configured and has not been rejected upstream."""
        return self._config.has_credential and not self._credential_rejected

    def mark_credential_rejected(self) -> None:
        if not self._credential_rejected:
            logger.warning(
                "Credential for %s rejected; fetching paused until reconfigured",
                self.provider_id,
            )
        self._credential_rejected = True

    def configure(self, config: ProviderConfig) -> None:
        """Swap provider settings; applies to calls started afterwards."""
        config.validate()
        self._config = config
        self._credential_rejected = False
        logger.info(
            "Provider configured: %s (rpm_limit=%d)",
            self.provider_id,
            config.effective_rpm_limit,
        )

    def provider(self) -> ContentProvider:
        return self._lookup(self.provider_id)

    async def generate(
        self,
        subject: str,
        query: str,
        *,
        credential: str | None = None,
        model: str | None = None,
        provider_id: str | None = None,
    ) -> str:
        """
        Generate content for one subject/query pair.

        Args:
            provider_id: Provider the call was planned for; it must still be
                the active one.

        Raises:
            ConfigurationError: If no credential is available or
                `provider_id` is no longer active.
            ProviderError: For any failed call, with a normalized kind.
        """
        key = credential or self._config.credential
        if not key:
            raise ConfigurationError("No API credential configured")
        if provider_id is not None and provider_id != self.provider_id:
            raise ConfigurationError(
                f"Provider switched from '{provider_id}' to '{self.provider_id}'"
            )
        provider = self.provider()
        try:
            return await await_with_timeout(
                provider.generate(
                    key,
                    subject,
                    query,
                    model=model or self._config.model,
                    base_url=self._config.base_url,
                ),
                self._request_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                ErrorKind.NETWORK_UNAVAILABLE,
                f"Request timed out after {self._request_timeout_s}s",
            ) from exc
        except ProviderError as exc:
            if exc.kind is ErrorKind.INVALID_CREDENTIAL and key == self._config.credential:
                self.mark_credential_rejected()
            raise

    async def validate_credential(self, credential: str | None = None) -> CredentialStatus:
        """Cheap credential check; a missed deadline counts as `NETWORK_ERROR`."""
        key = credential or self._config.credential
        if not key:
            raise ConfigurationError("No API credential configured")
        provider = self.provider()
        try:
            status = await await_with_timeout(
                provider.validate_credential(key, base_url=self._config.base_url),
                self._request_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.info("Credential validation timed out after %ss", self._request_timeout_s)
            return CredentialStatus.NETWORK_ERROR
        logger.debug("Credential validation for %s: %s", self.provider_id, status.value)
        return status
