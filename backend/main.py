"""ClanLink - linked family trees with Chinese kinship labels.

FastAPI server exposing family trees, cross-family linking and merged views.
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("CLANLINK_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("clanlink")

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kinship import describe_relationship
from merge import build_merged_view
from models import Family, FamilyTreeData, Gender, LinkRequest, LinkStatus, Person
from reminders import calculate_age, chinese_zodiac, upcoming_birthdays, upcoming_death_anniversaries, year_pillar
from sample_data import DEMO_FAMILY_CODE, DEMO_FAMILY_NAME, chen_family_root
from stores import (
    AuthenticationError,
    DuplicateFamilyError,
    FamilyNotFoundError,
    HttpRecordStore,
    InMemoryStore,
    InvalidLinkRequestError,
    LinkRequestNotFoundError,
    LinkTransitionError,
    RecordStore,
    StoreError,
)
from tabular import rows_to_tree, tree_to_rows
from tree_utils import (
    add_child,
    birth_year,
    can_edit,
    delete_node,
    find_node,
    legal_move_targets,
    move_node,
    move_rejection_reason,
    search_members,
    stamp_origin,
    update_node,
)


# Global state
record_store: RecordStore | None = None


def create_store() -> RecordStore:
    """Pick the record store from the environment."""
    store_url = os.getenv("CLANLINK_STORE_URL")
    if store_url:
        timeout = float(os.getenv("CLANLINK_STORE_TIMEOUT", "10"))
        logger.info(f"Using REST record store at {store_url} (timeout {timeout}s)")
        return HttpRecordStore(store_url, timeout=timeout)
    logger.info("CLANLINK_STORE_URL not set, using in-memory record store")
    return InMemoryStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - open and close the record store."""
    global record_store

    record_store = create_store()
    if os.getenv("CLANLINK_SEED_DEMO", "").lower() in ("1", "true", "yes"):
        try:
            await record_store.register_family(
                DEMO_FAMILY_CODE, DEMO_FAMILY_NAME, root=chen_family_root(DEMO_FAMILY_CODE)
            )
            logger.info(f"✓ Demo family {DEMO_FAMILY_CODE} registered")
        except DuplicateFamilyError:
            logger.info(f"Demo family {DEMO_FAMILY_CODE} already present")

    yield

    if record_store:
        logger.info("Closing record store...")
        await record_store.aclose()
        record_store = None


# Create FastAPI app
app = FastAPI(
    title="ClanLink",
    description="Linked family trees with Chinese kinship relationship labels",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = os.getenv("CLANLINK_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class ApiModel(BaseModel):
    """camelCase on the wire, like the tree and link records; snake_case also accepted."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(ApiModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    password: str | None = None
    root: Person | None = None


class LoginRequest(ApiModel):
    code: str
    password: str | None = None


class FamilyResponse(ApiModel):
    """A family without its password."""
    code: str
    name: str
    root: Person


class UpdateTreeRequest(ApiModel):
    root: Person


class NewMemberRequest(ApiModel):
    """A child to add under parent_id."""
    parent_id: str
    name: str = Field(min_length=1)
    gender: Gender = "male"
    birth_date: str = Field(min_length=1)
    death_date: str | None = None
    spouse: str | None = None
    spouse_birth_date: str | None = None
    spouse_death_date: str | None = None
    description: str | None = None
    photo_url: str | None = None
    spouse_photo_url: str | None = None


class UpdateMemberRequest(ApiModel):
    """Partial member update; new_parent_id moves the member first."""
    name: str | None = None
    gender: Gender | None = None
    birth_date: str | None = None
    death_date: str | None = None
    spouse: str | None = None
    spouse_birth_date: str | None = None
    spouse_death_date: str | None = None
    description: str | None = None
    photo_url: str | None = None
    spouse_photo_url: str | None = None
    new_parent_id: str | None = None


class ImportRowsRequest(ApiModel):
    rows: list[dict[str, Any]]


class LinkCreateRequest(ApiModel):
    """Ask to hang from_code's tree under to_code's tree."""
    from_code: str
    to_code: str
    target_name: str | None = None  # Defaults to the branch root
    target_birth_year: str | None = None


class LinkRespondRequest(ApiModel):
    id: str
    status: LinkStatus


class LinkToggleRequest(ApiModel):
    id: str
    is_hidden: bool


class RelationshipResponse(ApiModel):
    label: str
    spouse_title: str | None = None


class SuccessResponse(ApiModel):
    success: bool = True


# Helpers

def _store() -> RecordStore:
    if record_store is None:
        logger.error("Record store not initialized")
        raise HTTPException(status_code=503, detail="Record store not initialized")
    return record_store


def _store_http_error(e: StoreError) -> HTTPException:
    """Translate a store error into the matching HTTP error."""
    if isinstance(e, (FamilyNotFoundError, LinkRequestNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AuthenticationError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, DuplicateFamilyError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (LinkTransitionError, InvalidLinkRequestError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=503, detail=f"Record store unavailable: {e}")


async def _load_family(code: str) -> Family:
    try:
        return await _store().get_family(code)
    except StoreError as e:
        logger.warning(f"Failed to load family {code}: {e}")
        raise _store_http_error(e)


async def _save_root(code: str, root: Person) -> None:
    try:
        await _store().put_root(code, root)
    except StoreError as e:
        logger.error(f"Failed to save tree for {code}: {e}")
        raise _store_http_error(e)


async def _merged_view(code: str) -> FamilyTreeData:
    family = await _load_family(code)
    local = FamilyTreeData(root=family.root, name=family.name, master_code=code, family_codes=[code])
    return await build_merged_view(_store(), code, local=local)


def _family_response(family: Family) -> FamilyResponse:
    return FamilyResponse(code=family.code, name=family.name, root=family.root)


# Endpoints

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "store": type(record_store).__name__ if record_store else None,
    }


@app.post("/auth/register", response_model=FamilyResponse)
async def register(request: RegisterRequest):
    """Register a new family, starting from a single root ancestor unless a root is given."""
    logger.info(f"Registering family {request.code} ({request.name})")
    root = stamp_origin(request.root, request.code) if request.root else None
    try:
        family = await _store().register_family(request.code, request.name, request.password, root)
    except StoreError as e:
        logger.warning(f"Registration failed for {request.code}: {e}")
        raise _store_http_error(e)
    return _family_response(family)


@app.post("/auth/login", response_model=FamilyResponse)
async def login(request: LoginRequest):
    """Check family credentials."""
    try:
        family = await _store().authenticate(request.code, request.password)
    except StoreError as e:
        raise _store_http_error(e)
    logger.info(f"Family {family.code} logged in")
    return _family_response(family)


@app.get("/family/{code}", response_model=FamilyResponse)
async def get_family(code: str):
    """The family's own (unmerged) tree."""
    return _family_response(await _load_family(code))


@app.post("/family/{code}/tree", response_model=SuccessResponse)
async def replace_tree(code: str, request: UpdateTreeRequest):
    """Replace the family's whole tree."""
    await _load_family(code)
    await _save_root(code, stamp_origin(request.root, code))
    logger.info(f"Tree for {code} replaced")
    return SuccessResponse()


@app.get("/family/{code}/merged", response_model=FamilyTreeData)
async def get_merged_tree(code: str):
    """The tree of the whole linked network this family belongs to."""
    logger.info(f"Building merged view for {code}")
    return await _merged_view(code)


@app.post("/family/{code}/members", response_model=Person)
async def add_member(code: str, request: NewMemberRequest):
    """Add a child under parent_id in the family's own tree."""
    family = await _load_family(code)
    parent = find_node(family.root, request.parent_id)
    if not parent:
        logger.warning(f"Parent {request.parent_id} not found in {code}")
        raise HTTPException(status_code=404, detail=f"Person not found: '{request.parent_id}'")

    fields = request.model_dump(exclude={"parent_id"}, exclude_none=True)
    member = Person(id=f"new_{uuid.uuid4().hex[:12]}", origin_family_code=code, **fields)
    await _save_root(code, add_child(family.root, parent.id, member))
    logger.info(f"Added {member.name} under {parent.name} in {code}")
    return member


@app.patch("/family/{code}/members/{member_id}", response_model=Person)
async def update_member(code: str, member_id: str, request: UpdateMemberRequest):
    """Update a member's fields, optionally moving it under a new parent first."""
    family = await _load_family(code)
    root = family.root
    member = find_node(root, member_id)
    if not member:
        raise HTTPException(status_code=404, detail=f"Person not found: '{member_id}'")
    if not can_edit(member, code):
        logger.warning(f"{code} tried to edit {member_id} owned by {member.origin_family_code}")
        raise HTTPException(status_code=403, detail="Members of a linked family can only be edited by that family")

    if request.new_parent_id:
        logger.info(f"Moving node {member_id} to parent {request.new_parent_id} in {code}")
        moved = move_node(root, member_id, request.new_parent_id, owner_code=code)
        if moved is None:
            reason = move_rejection_reason(root, member_id, request.new_parent_id, owner_code=code)
            logger.warning(f"Move rejected: {reason}")
            raise HTTPException(status_code=409, detail=reason)
        root = moved

    # Optional fields may be cleared with null; required ones only replaced
    updates = {
        field: value
        for field, value in request.model_dump(exclude={"new_parent_id"}, exclude_unset=True).items()
        if value is not None or field not in ("name", "gender", "birth_date")
    }
    root = update_node(root, member_id, updates)
    await _save_root(code, root)
    logger.info(f"Member {member_id} updated in {code}")
    return find_node(root, member_id)


@app.delete("/family/{code}/members/{member_id}", response_model=SuccessResponse)
async def delete_member(code: str, member_id: str):
    """Delete a member and everything below it."""
    family = await _load_family(code)
    if member_id == family.root.id:
        raise HTTPException(status_code=400, detail="The root ancestor cannot be deleted")
    member = find_node(family.root, member_id)
    if not member:
        raise HTTPException(status_code=404, detail=f"Person not found: '{member_id}'")
    if not can_edit(member, code):
        raise HTTPException(status_code=403, detail="Members of a linked family can only be deleted by that family")

    await _save_root(code, delete_node(family.root, member_id))
    logger.info(f"Member {member_id} ({member.name}) deleted from {code}")
    return SuccessResponse()


@app.get("/family/{code}/members/{member_id}/move-targets", response_model=list[Person])
async def get_move_targets(code: str, member_id: str):
    """Members this one can legally be moved under (children omitted)."""
    family = await _load_family(code)
    if not find_node(family.root, member_id):
        raise HTTPException(status_code=404, detail=f"Person not found: '{member_id}'")
    targets = legal_move_targets(family.root, member_id, owner_code=code)
    return [t.model_copy(update={"children": ()}) for t in targets]


@app.get("/family/{code}/relationship", response_model=RelationshipResponse)
async def get_relationship(code: str, me_id: str = Query(...), target_id: str = Query(...)):
    """What target is to me, within the merged tree."""
    view = await _merged_view(code)
    result = describe_relationship(view.root, me_id, target_id)
    logger.debug(f"Relationship {me_id} -> {target_id} in {code}: {result['label'] or '(none)'}")
    return RelationshipResponse(label=result["label"], spouse_title=result["spouseTitle"])


@app.get("/family/{code}/search")
async def search(code: str, q: str = Query(..., min_length=1)):
    """Members of the merged tree whose name contains q."""
    view = await _merged_view(code)
    matches = search_members(view.root, q)
    logger.info(f"Search '{q}' in {code}: {len(matches)} matches")
    return {
        "results": [
            {
                "id": m.id,
                "name": m.name,
                "birthDate": m.birth_date,
                "age": calculate_age(m.birth_date, m.death_date),
                "zodiac": chinese_zodiac(m.birth_date),
                "yearPillar": year_pillar(m.birth_date),
            }
            for m in matches
        ]
    }


@app.get("/family/{code}/reminders")
async def get_reminders(code: str, today: date | None = None):
    """Upcoming birthdays (7 days) and death anniversaries (30 days) in the merged tree."""
    view = await _merged_view(code)
    return {
        "birthdays": upcoming_birthdays(view.root, today),
        "anniversaries": upcoming_death_anniversaries(view.root, today),
    }


@app.post("/family/{code}/import-rows", response_model=FamilyResponse)
async def import_rows(code: str, request: ImportRowsRequest):
    """Replace the family's tree with one built from spreadsheet rows."""
    family = await _load_family(code)
    logger.info(f"Importing {len(request.rows)} rows into {code}")
    result = rows_to_tree(request.rows)
    if result is None:
        logger.error(f"Import into {code} failed: no usable rows")
        raise HTTPException(status_code=400, detail="No family members found in the rows")

    root, _ = result
    root = stamp_origin(root, code)
    await _save_root(code, root)
    return FamilyResponse(code=code, name=family.name, root=root)


@app.get("/family/{code}/export-rows")
async def export_rows(code: str):
    """The family's own tree as spreadsheet rows."""
    family = await _load_family(code)
    return {"name": family.name, "rows": tree_to_rows(family.root)}


@app.post("/link/request", response_model=SuccessResponse)
async def request_link(request: LinkCreateRequest):
    """File a link request; the attachment point defaults to the branch root."""
    branch = await _load_family(request.from_code)
    target_name = request.target_name or branch.root.name
    target_year = request.target_birth_year or birth_year(branch.root)
    try:
        await _store().create_link_request(request.from_code, request.to_code, target_name, target_year)
    except StoreError as e:
        logger.warning(f"Link request {request.from_code} -> {request.to_code} refused: {e}")
        raise _store_http_error(e)
    return SuccessResponse()


@app.get("/link/incoming/{code}", response_model=list[LinkRequest])
async def incoming_links(code: str):
    """Pending requests waiting for this family's approval."""
    try:
        return await _store().incoming_requests(code)
    except StoreError as e:
        raise _store_http_error(e)


@app.get("/link/outgoing/{code}", response_model=list[LinkRequest])
async def outgoing_links(code: str):
    """Requests this family has filed."""
    try:
        return await _store().outgoing_requests(code)
    except StoreError as e:
        raise _store_http_error(e)


@app.get("/link/network/{code}", response_model=list[LinkRequest])
async def network_links(code: str):
    """All approved links of the network."""
    try:
        return await _store().list_approved_links()
    except StoreError as e:
        raise _store_http_error(e)


@app.post("/link/respond", response_model=SuccessResponse)
async def respond_link(request: LinkRespondRequest):
    """Approve or reject a pending request."""
    logger.info(f"Responding to link {request.id}: {request.status.value}")
    try:
        await _store().respond_to_link(request.id, request.status)
    except StoreError as e:
        logger.warning(f"Link response failed: {e}")
        raise _store_http_error(e)
    return SuccessResponse()


@app.post("/link/toggle", response_model=SuccessResponse)
async def toggle_link(request: LinkToggleRequest):
    """Hide or show an approved branch in the trunk's merged view."""
    try:
        await _store().set_link_hidden(request.id, request.is_hidden)
    except StoreError as e:
        raise _store_http_error(e)
    return SuccessResponse()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
