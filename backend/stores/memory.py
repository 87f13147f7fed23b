"""In-process record store, used for local runs and tests."""

import logging
import time
import uuid

from models import Family, LinkRequest, LinkStatus, Person, default_root
from .base import (
    AuthenticationError,
    DuplicateFamilyError,
    FamilyNotFoundError,
    InvalidLinkRequestError,
    LinkRequestNotFoundError,
    LinkTransitionError,
    RecordStore,
)

logger = logging.getLogger("clanlink.stores.memory")


class InMemoryStore(RecordStore):
    """Dictionary-backed store that enforces the link request lifecycle.

    Records are immutable pydantic values, so handing them out never exposes
    internal state.
    """

    def __init__(self):
        self._families: dict[str, Family] = {}
        self._links: dict[str, LinkRequest] = {}

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def get_family(self, code: str) -> Family:
        family = self._families.get(code)
        if family is None:
            raise FamilyNotFoundError(code)
        return family

    async def put_root(self, code: str, root: Person) -> None:
        family = await self.get_family(code)
        self._families[code] = family.model_copy(update={"root": root})
        logger.debug(f"Stored tree for {code}")

    async def register_family(
        self, code: str, name: str, password: str | None = None, root: Person | None = None
    ) -> Family:
        if code in self._families:
            raise DuplicateFamilyError(code)
        family = Family(code=code, name=name, password=password, root=root or default_root(code))
        self._families[code] = family
        logger.info(f"Registered family {code} ({name})")
        return family

    async def authenticate(self, code: str, password: str | None) -> Family:
        family = self._families.get(code)
        if family is None or (family.password or "") != (password or ""):
            logger.warning(f"Failed login for family code {code}")
            raise AuthenticationError("Invalid credentials")
        return family

    # ------------------------------------------------------------------
    # Link requests
    # ------------------------------------------------------------------

    async def list_approved_links(self) -> list[LinkRequest]:
        return [r for r in self._links.values() if r.status == LinkStatus.APPROVED]

    async def list_links_involving(self, code: str) -> list[LinkRequest]:
        return [
            r for r in self._links.values()
            if r.from_family_code == code or r.to_family_code == code
        ]

    async def create_link_request(
        self, from_code: str, to_code: str, target_name: str, target_birth_year: str
    ) -> None:
        if from_code == to_code:
            raise InvalidLinkRequestError("A family cannot link to itself")
        await self.get_family(from_code)
        await self.get_family(to_code)

        for existing in self._links.values():
            if (
                existing.from_family_code == from_code
                and existing.to_family_code == to_code
                and existing.status == LinkStatus.PENDING
            ):
                logger.info(f"Pending link {from_code} -> {to_code} already exists ({existing.id})")
                return

        link = LinkRequest(
            id=uuid.uuid4().hex,
            from_family_code=from_code,
            to_family_code=to_code,
            target_name=target_name,
            target_birth_year=str(target_birth_year),
            timestamp=int(time.time() * 1000),
        )
        self._links[link.id] = link
        logger.info(f"Link requested: {from_code} -> {to_code} at {target_name} ({target_birth_year})")

    async def respond_to_link(self, link_id: str, status: LinkStatus) -> None:
        link = self._get_link(link_id)
        status = LinkStatus(status)
        if status == LinkStatus.PENDING:
            raise LinkTransitionError("A response must approve or reject the request")
        if link.status != LinkStatus.PENDING:
            raise LinkTransitionError(f"Link request {link_id} is already {link.status.value}")

        if status == LinkStatus.APPROVED:
            for other in self._links.values():
                if other.from_family_code == link.from_family_code and other.status == LinkStatus.APPROVED:
                    raise LinkTransitionError(
                        f"Family {link.from_family_code} is already linked to {other.to_family_code}"
                    )

        self._links[link_id] = link.model_copy(update={"status": status})
        logger.info(f"Link {link.from_family_code} -> {link.to_family_code} {status.value}")

    async def set_link_hidden(self, link_id: str, hidden: bool) -> None:
        link = self._get_link(link_id)
        if link.status != LinkStatus.APPROVED:
            raise LinkTransitionError(f"Only approved links can be hidden (link is {link.status.value})")
        self._links[link_id] = link.model_copy(update={"is_hidden": hidden})
        logger.info(f"Link {link.from_family_code} -> {link.to_family_code} hidden={hidden}")

    def _get_link(self, link_id: str) -> LinkRequest:
        link = self._links.get(link_id)
        if link is None:
            raise LinkRequestNotFoundError(link_id)
        return link

    def load_link(self, link: LinkRequest) -> None:
        """Insert an existing link record unchanged, bypassing lifecycle checks."""
        self._links[link.id] = link
