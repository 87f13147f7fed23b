"""Record shapes shared by the tree, kinship, merge and store layers."""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Gender = Literal["male", "female"]

EXCEL_EPOCH = date(1899, 12, 30)


# ============================================================================
# Date Normalization
# ============================================================================

def normalize_date(value: Any) -> str:
    """
    Normalize a calendar date to YYYY-MM-DD.

    Accepts:
    - "1990-06-25", "1990/6/25", "1990.6.25"
    - "1990-06" and "1990" (missing parts become 01)
    - ISO timestamps ("1990-06-25T08:00:00")
    - Excel serial numbers (days since 1899-12-30)
    - date / datetime objects

    Empty input gives "". Strings that cannot be parsed are returned stripped
    but otherwise unchanged.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (EXCEL_EPOCH + timedelta(days=round(value))).isoformat()

    date_str = str(value).strip()
    candidate = date_str.split("T")[0].split(" ")[0]
    candidate = candidate.replace("/", "-").replace(".", "-")
    parts = candidate.split("-")
    if not 1 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
        return date_str
    if len(parts[0]) != 4:
        return date_str

    numbers = [int(p) for p in parts] + [1] * (3 - len(parts))
    try:
        return date(*numbers).isoformat()
    except ValueError:
        return date_str


def parse_date(value: str | None) -> date | None:
    """Parse a normalized date string, None when absent or invalid."""
    normalized = normalize_date(value)
    if not normalized:
        return None
    try:
        return date.fromisoformat(normalized)
    except ValueError:
        return None


# ============================================================================
# Tree Node
# ============================================================================

class Person(BaseModel):
    """A node in a family tree.

    The spouse is flat data on the person: it has no id and no children and
    is never a traversal target. Instances are immutable; tree operations
    build new values instead of editing nodes in place.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    gender: Gender = "male"
    birth_date: str = ""
    death_date: str | None = None
    origin_family_code: str | None = None

    spouse: str | None = None
    spouse_birth_date: str | None = None
    spouse_death_date: str | None = None
    spouse_photo_url: str | None = None

    description: str | None = None
    photo_url: str | None = None
    children: tuple["Person", ...] = ()

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _normalize_birth_date(cls, value: Any) -> str:
        return normalize_date(value)

    @field_validator("death_date", "spouse_birth_date", "spouse_death_date", mode="before")
    @classmethod
    def _normalize_optional_date(cls, value: Any) -> str | None:
        return normalize_date(value) or None

    @property
    def is_living(self) -> bool:
        return not self.death_date


class Family(BaseModel):
    """A family account owning exactly one tree."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    code: str
    name: str
    password: str | None = None
    root: Person


def default_root(code: str) -> Person:
    """The single-node tree a family starts with at registration."""
    return Person(
        id=f"root_{code}",
        name="Root Ancestor",
        gender="male",
        birth_date="1900-01-01",
        origin_family_code=code,
    )


# ============================================================================
# Link Requests
# ============================================================================

class LinkStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LinkRequest(BaseModel):
    """Directed edge asking for the branch (from) to hang under the trunk (to)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    from_family_code: str
    to_family_code: str
    target_name: str
    target_birth_year: str
    status: LinkStatus = LinkStatus.PENDING
    is_hidden: bool = False
    timestamp: int = 0

    @field_validator("id", "target_birth_year", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return str(value)

    @field_validator("is_hidden", mode="before")
    @classmethod
    def _missing_hidden_is_false(cls, value: Any) -> Any:
        # Strings such as "false" and 0/1 are left to pydantic's bool parsing
        return False if value is None or value == "" else value

    @property
    def is_active(self) -> bool:
        """Approved and not suppressed by the trunk family."""
        return self.status == LinkStatus.APPROVED and not self.is_hidden


class FamilyTreeData(BaseModel):
    """A (possibly merged) tree ready for display."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    root: Person
    name: str
    master_code: str | None = None
    family_codes: list[str] = Field(default_factory=list)
