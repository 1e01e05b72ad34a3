"""Write the acquired credential to its handoff file.

Downstream tools read the credential from a fixed location rather than from
this program's output. Cookies are written as ``"<name> <value>"`` (or as a
``{"name": ..., "value": ...}`` object when ``handoff_format`` is ``json``);
tokens are written as the provider's own JSON body.

Files are written atomically via :func:`~maconomy_auth.config.atomic_write`
with ``0o600`` permissions, replacing any previous content.

See Also:
    :class:`~maconomy_auth.auth.base.AcquisitionResult` -- only successful
    results reach the sink.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from maconomy_auth.config import atomic_write
from maconomy_auth.exceptions import IoError, NotFoundError
from maconomy_auth.models import CapturedCookie, Credential, TokenResponse

logger = logging.getLogger(__name__)


class CredentialSink:
    """Persist one credential to *path*.

    Args:
        path: Handoff file location. Relative paths resolve against the
            current working directory.
        handoff_format: ``"text"`` or ``"json"``; applies to cookies only.
    """

    def __init__(self, path: Path, handoff_format: str = "text") -> None:
        self._path = Path(path)
        self._format = handoff_format

    @property
    def path(self) -> Path:
        return self._path

    def serialize(self, credential: Credential) -> str:
        if isinstance(credential, TokenResponse):
            return json.dumps(credential.raw)
        if self._format == "json":
            return json.dumps({"name": credential.name, "value": credential.value})
        return credential.handoff_line()

    def persist(self, credential: Credential) -> Path:
        """Write *credential*, overwriting the handoff file.

        Returns:
            The path written to.

        Raises:
            IoError: If the file cannot be written. Nothing is retried.
        """
        data = self.serialize(credential)
        try:
            atomic_write(self._path, data, mode=0o600)
        except OSError as exc:
            raise IoError(f"Failed to write credential to {self._path}: {exc}") from exc
        logger.debug("Credential written to %s", self._path)
        return self._path

    def read_cookie(self) -> Optional[CapturedCookie]:
        """Read back a cookie handoff file in either format.

        Returns:
            The stored cookie, or ``None`` if the file does not exist.

        Raises:
            NotFoundError: If the file holds no recognisable cookie.
            IoError: If the file exists but cannot be read.
        """
        if not self._path.exists():
            return None
        try:
            content = self._path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise IoError(f"Failed to read {self._path}: {exc}") from exc

        if content.startswith("{"):
            try:
                payload = json.loads(content)
                return CapturedCookie(name=payload["name"], value=payload["value"])
            except (ValueError, KeyError, TypeError) as exc:
                raise NotFoundError(f"{self._path} does not contain a cookie: {exc}") from exc

        name, _, value = content.partition(" ")
        if not name or not value:
            raise NotFoundError(f"{self._path} does not contain a cookie")
        return CapturedCookie(name=name, value=value)
