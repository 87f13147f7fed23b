"""Record store interface consumed by the merge engine and the API layer."""

from abc import ABC, abstractmethod

from models import Family, LinkRequest, LinkStatus, Person


class StoreError(Exception):
    """The record store could not complete an operation."""


class FamilyNotFoundError(StoreError):
    def __init__(self, code: str):
        super().__init__(f"Family not found: '{code}'")
        self.code = code


class DuplicateFamilyError(StoreError):
    def __init__(self, code: str):
        super().__init__(f"Family code already exists: '{code}'")
        self.code = code


class AuthenticationError(StoreError):
    """Wrong family code / password combination."""


class LinkRequestNotFoundError(StoreError):
    def __init__(self, link_id: str):
        super().__init__(f"Link request not found: '{link_id}'")
        self.link_id = link_id


class LinkTransitionError(StoreError):
    """A link request change that its current state does not allow."""


class InvalidLinkRequestError(StoreError):
    """A link request that can never be valid (e.g. a family linking to itself)."""


class RecordStore(ABC):
    """
    Async access to families and link requests.

    Every call is one independent round trip; trees are read and written as
    whole values.
    """

    @abstractmethod
    async def get_family(self, code: str) -> Family:
        """Fetch a family. Raises FamilyNotFoundError."""

    async def get_root(self, code: str) -> Person:
        family = await self.get_family(code)
        return family.root

    @abstractmethod
    async def put_root(self, code: str, root: Person) -> None:
        """Replace a family's whole tree."""

    @abstractmethod
    async def register_family(
        self, code: str, name: str, password: str | None = None, root: Person | None = None
    ) -> Family:
        """Create a family (default single-node root). Raises DuplicateFamilyError."""

    @abstractmethod
    async def authenticate(self, code: str, password: str | None) -> Family:
        """Return the family for matching credentials. Raises AuthenticationError."""

    @abstractmethod
    async def list_approved_links(self) -> list[LinkRequest]:
        """All approved link requests in the whole network (hidden ones included)."""

    @abstractmethod
    async def list_links_involving(self, code: str) -> list[LinkRequest]:
        """Link requests where the family is the branch or the trunk."""

    @abstractmethod
    async def create_link_request(
        self, from_code: str, to_code: str, target_name: str, target_birth_year: str
    ) -> None:
        """File a pending request for from_code to hang under to_code."""

    @abstractmethod
    async def respond_to_link(self, link_id: str, status: LinkStatus) -> None:
        """Approve or reject a pending request."""

    @abstractmethod
    async def set_link_hidden(self, link_id: str, hidden: bool) -> None:
        """Trunk-side suppression of an approved branch."""

    async def incoming_requests(self, code: str) -> list[LinkRequest]:
        """Pending requests waiting for this family's decision."""
        links = await self.list_links_involving(code)
        return [r for r in links if r.to_family_code == code and r.status == LinkStatus.PENDING]

    async def outgoing_requests(self, code: str) -> list[LinkRequest]:
        """Requests this family has filed, in any state."""
        links = await self.list_links_involving(code)
        return [r for r in links if r.from_family_code == code]

    async def aclose(self) -> None:
        """Release any held connections."""
