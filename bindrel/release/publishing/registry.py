# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Registry update requests.

The registry is an opaque collaborator: one call, `submit_update`, that
either returns a tracking handle (an issue URL, a request id, ...) or raises
RegistryError. HttpRegistryClient talks to an HTTP endpoint that accepts a
JSON body `{"package": ..., "version": ...}`.
"""

import logging
import os
from typing import Optional, Protocol

import requests

from bindrel.logging.logger import get_logger
from bindrel.release.errors import RegistryError

_logger: logging.Logger = get_logger(__name__)

_HANDLE_FIELDS = ("tracking", "id", "url")


class RegistryClient(Protocol):
    """Anything that can ask a registry to pick up a new package version."""

    def submit_update(self, package_name: str, version: str) -> str: ...


class HttpRegistryClient:
    """Submits registry updates with a JSON POST."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.url = url
        self.token = token
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_env(
        cls,
        url: str,
        token_env: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> "HttpRegistryClient":
        """Build a client, reading the bearer token from the named environment variable."""
        token = None
        if token_env is not None:
            token = os.environ.get(token_env)
            if not token:
                raise RegistryError(f"Registry token variable {token_env} is not set")
        return cls(url, token=token, timeout_seconds=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def submit_update(self, package_name: str, version: str) -> str:
        """
        Ask the registry to register `version` of `package_name`.

        Returns:
            The tracking handle from the reply: the first of its `tracking`,
            `id` or `url` fields, else the `Location` header.

        Raises:
            RegistryError: network failure, non-2xx status, or no handle in the reply.
        """
        _logger.info(
            "Submitting registry update",
            extra={"url": self.url, "package": package_name, "version": version},
        )
        try:
            response = requests.post(
                self.url,
                json={"package": package_name, "version": version},
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as err:
            raise RegistryError(f"Registry request to {self.url} failed: {err}") from err

        if not response.ok:
            raise RegistryError(
                f"Registry rejected {package_name} {version}: "
                f"HTTP {response.status_code} {response.text.strip()[:200]}"
            )

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if isinstance(payload, dict):
            for field_name in _HANDLE_FIELDS:
                handle = payload.get(field_name)
                if handle:
                    return str(handle)

        location = response.headers.get("Location")
        if location:
            return location

        raise RegistryError(
            f"Registry accepted {package_name} {version} but returned no tracking handle"
        )
