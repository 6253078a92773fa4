"""DiagRAMS application credentials holder.

Resolves a credential reference through a host-supplied lookup and validates
the result once, at construction time.
"""

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeAlias

from .host import NodeHost

CredentialsLookup: TypeAlias = Callable[[str], Mapping[str, str] | None]


@dataclass(frozen=True, slots=True)
class Credentials:
    """An application identifier and secret pair."""

    application_id: str
    application_secret: str


def _dump_found(found: Mapping[str, str] | None, *, redact: bool) -> dict[str, str] | None:
    """Return what the lookup found, with a non-empty secret masked when redacting."""
    if found is None:
        return None
    dumped = dict(found)
    if redact and dumped.get("applicationSecret"):
        dumped["applicationSecret"] = "***"
    return dumped


class CredentialsNode:
    """Validate and expose the credentials stored under ``reference``.

    The node is either ready, with both fields non-empty, or bad. A bad node
    exposes no credentials; bridges using it fail token acquisition on every
    event until the configuration is fixed.
    """

    def __init__(
        self,
        reference: str,
        *,
        lookup: CredentialsLookup,
        host: NodeHost,
        redact: bool = True,
    ) -> None:
        self.reference = reference
        self._credentials: Credentials | None = None

        found = lookup(reference)
        application_id = found.get("applicationId") if found else None
        application_secret = found.get("applicationSecret") if found else None
        if application_id and application_secret:
            self._credentials = Credentials(application_id, application_secret)
            host.info("Credentials ready!")
            return

        host.error("Bad credentials!")
        host.debug(json.dumps(_dump_found(found, redact=redact)))

    @property
    def ready(self) -> bool:
        """Return whether both the identifier and the secret were found."""
        return self._credentials is not None

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def application_id(self) -> str | None:
        return self._credentials.application_id if self._credentials else None

    @property
    def application_secret(self) -> str | None:
        return self._credentials.application_secret if self._credentials else None


__all__ = ["Credentials", "CredentialsLookup", "CredentialsNode"]
