"""Record store backed by the REST family service."""

import logging
from typing import Any

import httpx

from models import Family, LinkRequest, LinkStatus, Person, default_root
from .base import (
    AuthenticationError,
    DuplicateFamilyError,
    FamilyNotFoundError,
    LinkRequestNotFoundError,
    RecordStore,
    StoreError,
)

logger = logging.getLogger("clanlink.stores.http")

DEFAULT_TIMEOUT = 10.0


class HttpRecordStore(RecordStore):
    """
    Talks to the family service's ``/api`` routes.

    Args:
        base_url: Service root, e.g. ``http://localhost:3000``
        timeout: Per-request timeout in seconds
        client: Pre-built ``httpx.AsyncClient`` (tests pass one with a mock transport)
    """

    def __init__(self, base_url: str = "", timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
        not_found: StoreError | None = None,
    ) -> Any:
        logger.debug(f"{method} {url}")
        try:
            response = await self._client.request(method, f"/api{url}", json=json)
        except httpx.HTTPError as e:
            logger.error(f"Record store request failed: {method} {url}: {e}")
            raise StoreError(f"Record store unavailable: {e}") from e

        if response.is_success:
            return response.json()

        try:
            detail = response.json().get("error", "")
        except ValueError:
            detail = ""
        detail = detail or f"HTTP {response.status_code}"
        logger.warning(f"Record store returned {response.status_code} for {method} {url}: {detail}")

        if response.status_code == 404 and not_found is not None:
            raise not_found
        if response.status_code == 401:
            raise AuthenticationError(detail)
        if response.status_code == 409:
            raise DuplicateFamilyError((json or {}).get("code", ""))
        raise StoreError(detail)

    @staticmethod
    def _family_from_payload(payload: dict[str, Any]) -> Family:
        return Family.model_validate(payload)

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def get_family(self, code: str) -> Family:
        payload = await self._request("GET", f"/family/{code}", not_found=FamilyNotFoundError(code))
        return self._family_from_payload(payload)

    async def put_root(self, code: str, root: Person) -> None:
        await self._request(
            "POST",
            "/family/update",
            json={"code": code, "root": root.model_dump(mode="json", by_alias=True, exclude_none=True)},
        )

    async def register_family(
        self, code: str, name: str, password: str | None = None, root: Person | None = None
    ) -> Family:
        root = root or default_root(code)
        payload = await self._request(
            "POST",
            "/auth/register",
            json={
                "code": code,
                "name": name,
                "password": password,
                "root": root.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
        )
        return self._family_from_payload(payload)

    async def authenticate(self, code: str, password: str | None) -> Family:
        payload = await self._request("POST", "/auth/login", json={"code": code, "password": password})
        return self._family_from_payload(payload)

    # ------------------------------------------------------------------
    # Link requests
    # ------------------------------------------------------------------

    async def list_approved_links(self) -> list[LinkRequest]:
        # The network route ignores its code segment and returns every approved link
        payload = await self._request("GET", "/link/network/all")
        links = [LinkRequest.model_validate(item) for item in payload]
        return [r for r in links if r.status == LinkStatus.APPROVED]

    async def list_links_involving(self, code: str) -> list[LinkRequest]:
        network = await self._request("GET", f"/link/network/{code}")
        outgoing = await self._request("GET", f"/link/outgoing/{code}")
        incoming = await self._request("GET", f"/link/incoming/{code}")

        # Network entries carry isHidden, so they win on duplicates
        links: dict[str, LinkRequest] = {}
        for item in [*network, *outgoing, *incoming]:
            link = LinkRequest.model_validate(item)
            if link.from_family_code != code and link.to_family_code != code:
                continue
            links.setdefault(link.id, link)
        return list(links.values())

    async def create_link_request(
        self, from_code: str, to_code: str, target_name: str, target_birth_year: str
    ) -> None:
        await self._request(
            "POST",
            "/link/request",
            json={
                "fromCode": from_code,
                "toCode": to_code,
                "targetName": target_name,
                "targetBirthYear": str(target_birth_year),
            },
        )

    async def respond_to_link(self, link_id: str, status: LinkStatus) -> None:
        await self._request(
            "POST",
            "/link/respond",
            json={"id": link_id, "status": LinkStatus(status).value},
            not_found=LinkRequestNotFoundError(link_id),
        )

    async def set_link_hidden(self, link_id: str, hidden: bool) -> None:
        await self._request(
            "POST",
            "/link/toggle",
            json={"id": link_id, "isHidden": hidden},
            not_found=LinkRequestNotFoundError(link_id),
        )
