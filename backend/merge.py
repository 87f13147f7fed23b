"""Assemble one view of a family network linked through approved link requests.

A branch family hangs its tree under a trunk family through an approved link
(branch = ``from``, trunk = ``to``). Following outgoing links from any family
leads to the master family, whose tree is the base of the merged view; branch
trees are grafted on recursively at the node matching the branch root's name
and birth year.
"""

import asyncio
import logging
from typing import Callable

from models import FamilyTreeData, LinkRequest, LinkStatus, Person
from stores.base import RecordStore, StoreError
from tree_utils import birth_year, find_node_by_name_and_year, replace_node, stamp_origin

logger = logging.getLogger("clanlink.merge")

LINKED_SUFFIX = " (已关联)"

# on_event(message, severity) with severity one of "info", "warning", "error"
EventCallback = Callable[[str, str], None]

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_event(message: str, severity: str = "info") -> None:
    """Default event sink: the clanlink.merge logger."""
    logger.log(_LEVELS.get(severity, logging.INFO), message)


class MergeAbortedError(Exception):
    """A store failure stopped the merge; no partial result is produced."""


# ============================================================================
# Master Discovery
# ============================================================================

def find_master_code(
    links: list[LinkRequest], family_code: str, on_event: EventCallback = log_event
) -> str:
    """
    Follow approved outgoing links from family_code to the family that has none.

    A cycle stops the walk at the last family reached before a repeat. When a
    family has several approved outgoing links the first one listed is taken.
    """
    approved = [r for r in links if r.status == LinkStatus.APPROVED]
    current = family_code
    visited: set[str] = set()

    while True:
        visited.add(current)
        outgoing = [r for r in approved if r.from_family_code == current]
        if not outgoing:
            return current
        if len(outgoing) > 1:
            targets = ", ".join(r.to_family_code for r in outgoing)
            on_event(f"Family {current} has {len(outgoing)} approved outgoing links ({targets}); following {outgoing[0].to_family_code}", "warning")

        next_code = outgoing[0].to_family_code
        if next_code in visited:
            on_event(f"Link cycle detected at {next_code}; using {current} as master", "warning")
            return current
        current = next_code


# ============================================================================
# Grafting
# ============================================================================

def merge_trees(
    main_tree: Person,
    branch_tree: Person,
    branch_code: str | None = None,
    on_event: EventCallback = log_event,
) -> Person:
    """
    Graft branch_tree's children under the node of main_tree matching its root.

    The attachment node is found by exact name and birth year. Children
    already present there (same name and birth date) are not added again.
    If no node matches, main_tree is returned unchanged.
    """
    year = birth_year(branch_tree)
    target = find_node_by_name_and_year(main_tree, branch_tree.name, year)
    if not target:
        on_event(f"Could not merge branch {branch_code or ''}: node {branch_tree.name} ({year}) not found in main tree", "warning")
        return main_tree

    on_event(f"Merging branch starting at {branch_tree.name} ({year}) into main tree", "info")

    children = list(target.children)
    for branch_child in branch_tree.children:
        exists = any(
            c.name == branch_child.name and c.birth_date == branch_child.birth_date
            for c in children
        )
        if not exists:
            if branch_code:
                branch_child = stamp_origin(branch_child, branch_code)
            children.append(branch_child)

    return replace_node(main_tree, target, target.model_copy(update={"children": tuple(children)}))


async def _assemble(
    store: RecordStore,
    code: str,
    links: list[LinkRequest],
    visited: frozenset[str],
    merged_codes: list[str],
    on_event: EventCallback,
) -> Person:
    root = await store.get_root(code)
    merged_codes.append(code)

    branch_codes: list[str] = []
    for link in links:
        if link.to_family_code != code or not link.is_active:
            continue
        if link.from_family_code in visited or link.from_family_code in branch_codes:
            continue
        branch_codes.append(link.from_family_code)

    # Sibling branches are independent; each carries its own copy of the path
    # Every sibling is awaited to completion before a failure is raised
    branches = await asyncio.gather(*(
        _assemble(store, branch, links, visited | {branch}, merged_codes, on_event)
        for branch in branch_codes
    ), return_exceptions=True)
    for result in branches:
        if isinstance(result, BaseException):
            raise result

    for branch, branch_root in zip(branch_codes, branches):
        root = merge_trees(root, branch_root, branch, on_event)
    return root


# ============================================================================
# Merged View
# ============================================================================

async def merge_family_network(
    store: RecordStore, family_code: str, on_event: EventCallback = log_event
) -> FamilyTreeData:
    """
    Build the merged tree for the network family_code belongs to.

    Raises MergeAbortedError if any record cannot be fetched.
    """
    try:
        links = await store.list_approved_links()
        links = [r for r in links if r.status == LinkStatus.APPROVED]

        master_code = find_master_code(links, family_code, on_event)
        merged_codes: list[str] = []
        root = await _assemble(store, master_code, links, frozenset({master_code}), merged_codes, on_event)
        master = await store.get_family(master_code)
    except StoreError as e:
        on_event(f"Merge for {family_code} aborted: {e}", "error")
        raise MergeAbortedError(str(e)) from e

    name = master.name if master_code == family_code else f"{master.name}{LINKED_SUFFIX}"
    on_event(f"Merged view for {family_code}: master {master_code}, {len(merged_codes)} families", "info")
    return FamilyTreeData(root=root, name=name, master_code=master_code, family_codes=merged_codes)


async def build_merged_view(
    store: RecordStore,
    family_code: str,
    on_event: EventCallback = log_event,
    local: FamilyTreeData | None = None,
) -> FamilyTreeData:
    """
    Merged view of family_code, or its own unmerged tree if the merge aborts.

    ``local`` is the fallback when already known to the caller; otherwise the
    family's own record is fetched (a failure there propagates as StoreError).
    """
    try:
        return await merge_family_network(store, family_code, on_event)
    except MergeAbortedError:
        if local is not None:
            return local
        family = await store.get_family(family_code)
        on_event(f"Falling back to the unmerged tree of {family_code}", "warning")
        return FamilyTreeData(root=family.root, name=family.name, master_code=family_code, family_codes=[family_code])
