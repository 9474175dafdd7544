"""
HTTP catalog backend: PATCH the resource row through a PostgREST-style REST API.

The web app's database exposes /rest/v1/{table}; the worker authenticates with a
service-role key sent both as `apikey` and as a bearer token. Only the patch's
non-null fields are sent, filtered to the one row whose id matches.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request

from resource_media_shared import CatalogPatch
from resource_media_shared.interfaces import CatalogUpdateError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30


class PostgrestResourceCatalog:
    """ResourceCatalog implementation over a PostgREST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "resources",
        timeout: int = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        if not base_url:
            raise ValueError("catalog base_url is required")
        if not api_key:
            raise ValueError("catalog api_key is required")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._table = table
        self._timeout = timeout

    def resource_url(self, resource_id: str) -> str:
        """URL selecting exactly the row with this id."""
        return (
            f"{self._base_url}/rest/v1/{urllib.parse.quote(self._table)}"
            f"?id=eq.{urllib.parse.quote(resource_id, safe='')}"
        )

    def apply_patch(self, resource_id: str, patch: CatalogPatch) -> None:
        """
        Send the sparse patch. Raises CatalogUpdateError on HTTP/transport failure
        or when no row matched (the resource does not exist).
        """
        fields = patch.to_fields()
        req = urllib.request.Request(
            self.resource_url(resource_id),
            data=json.dumps(fields).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "apikey": self._api_key,
                "Authorization": f"Bearer {self._api_key}",
                "Prefer": "return=representation",
            },
            method="PATCH",
        )
        logger.debug("catalog: resource_id=%s patch fields=%s", resource_id, sorted(fields))
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                if resp.status >= 400:
                    raise CatalogUpdateError(
                        f"catalog PATCH for resource {resource_id!r} failed: HTTP {resp.status}"
                    )
                payload = resp.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise CatalogUpdateError(
                f"catalog PATCH for resource {resource_id!r} failed: HTTP {e.code}: {detail}"
            ) from e
        except urllib.error.URLError as e:
            raise CatalogUpdateError(
                f"catalog PATCH for resource {resource_id!r} failed: {e.reason}"
            ) from e

        try:
            rows = json.loads(payload) if payload else []
        except json.JSONDecodeError as e:
            raise CatalogUpdateError(
                f"catalog PATCH for resource {resource_id!r} returned invalid JSON"
            ) from e
        if not rows:
            raise CatalogUpdateError(f"resource {resource_id!r} not found in catalog")
