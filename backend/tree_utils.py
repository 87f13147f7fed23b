"""Tree search, root-to-node paths and copy-on-write tree mutation."""

from typing import Any

from models import Person, normalize_date


# ============================================================================
# Search Helpers
# ============================================================================

def flatten_tree(root: Person) -> list[Person]:
    """All nodes of the tree in pre-order (root first)."""
    members = [root]
    for child in root.children:
        members.extend(flatten_tree(child))
    return members


def find_node(root: Person, node_id: str) -> Person | None:
    """Find a node by id anywhere below (and including) root."""
    if root.id == node_id:
        return root
    for child in root.children:
        found = find_node(child, node_id)
        if found:
            return found
    return None


def find_parent(root: Person, node_id: str) -> Person | None:
    """Return the parent of node_id, or None for the root / unknown ids."""
    for child in root.children:
        if child.id == node_id:
            return root
        found = find_parent(child, node_id)
        if found:
            return found
    return None


def birth_year(person: Person) -> str:
    """Birth year as a string ("" when the birth date is unknown)."""
    return normalize_date(person.birth_date).split("-")[0]


def find_node_by_name_and_year(root: Person, name: str, year: str) -> Person | None:
    """Exact-match search on name and birth year, pre-order, first hit wins."""
    if root.name == name and birth_year(root) == str(year):
        return root
    for child in root.children:
        found = find_node_by_name_and_year(child, name, year)
        if found:
            return found
    return None


def search_members(root: Person, query: str) -> list[Person]:
    """Members whose name contains the query string."""
    query = query.strip()
    if not query:
        return []
    return [member for member in flatten_tree(root) if query in member.name]


def count_children_gender(children: tuple[Person, ...] | list[Person]) -> tuple[int, int]:
    """Return (boys, girls) among the given children."""
    boys = sum(1 for c in children if c.gender == "male")
    girls = sum(1 for c in children if c.gender == "female")
    return boys, girls


# ============================================================================
# Paths and Lowest Common Ancestor
# ============================================================================

def find_path(root: Person, node_id: str) -> list[Person] | None:
    """The chain of nodes from root down to node_id, root first."""
    if root.id == node_id:
        return [root]
    for child in root.children:
        path = find_path(child, node_id)
        if path:
            return [root, *path]
    return None


def lowest_common_ancestor_depth(path_a: list[Person], path_b: list[Person]) -> int:
    """Length of the shared id prefix of two root paths.

    The LCA itself sits at index ``k - 1``; ``len(path) - k`` is the number of
    edges from the LCA down to the path's last node.
    """
    k = 0
    while k < len(path_a) and k < len(path_b) and path_a[k].id == path_b[k].id:
        k += 1
    return k


def split_depths(path_a: list[Person], path_b: list[Person]) -> tuple[int, int, int]:
    """Return (shared_prefix, depth_a, depth_b) for two root paths."""
    k = lowest_common_ancestor_depth(path_a, path_b)
    return k, len(path_a) - k, len(path_b) - k


# ============================================================================
# Copy-on-Write Mutation
# ============================================================================

def update_node(root: Person, node_id: str, updates: dict[str, Any]) -> Person:
    """
    Return a new tree where the node with node_id has the given fields replaced.

    Field names are the Python attribute names (e.g. ``birth_date``). Unknown
    ids leave the tree unchanged (the same object is returned).
    """
    if root.id == node_id:
        return root.model_copy(update=_revalidate(root, updates))
    if not root.children:
        return root

    new_children = tuple(update_node(child, node_id, updates) for child in root.children)
    if all(new is old for new, old in zip(new_children, root.children)):
        return root
    return root.model_copy(update={"children": new_children})


def _revalidate(person: Person, updates: dict[str, Any]) -> dict[str, Any]:
    """Run updates through the model's validators (date normalization, children)."""
    aliases = {info.alias: name for name, info in Person.model_fields.items() if info.alias}
    updates = {aliases.get(key, key): value for key, value in updates.items()}
    merged = {**person.model_dump(exclude={"children"}), **updates}
    merged.setdefault("children", person.children)
    validated = Person.model_validate(merged)
    return {field: getattr(validated, field) for field in updates if field in Person.model_fields}


def replace_node(root: Person, target: Person, replacement: Person) -> Person:
    """Return a new tree with the node object ``target`` swapped for replacement.

    Matches by identity, not id: a merged tree holds nodes of several
    families whose ids may collide. Unchanged if target is not in the tree.
    """
    if root is target:
        return replacement
    for index, child in enumerate(root.children):
        new_child = replace_node(child, target, replacement)
        if new_child is not child:
            children = root.children[:index] + (new_child,) + root.children[index + 1:]
            return root.model_copy(update={"children": children})
    return root


def add_child(root: Person, parent_id: str, new_person: Person, index: int | None = None) -> Person:
    """Return a new tree with new_person inserted under parent_id.

    Appends by default; ``index`` inserts at a given position. No-op when the
    parent does not exist.
    """
    if root.id == parent_id:
        children = list(root.children)
        if index is None:
            children.append(new_person)
        else:
            children.insert(index, new_person)
        return root.model_copy(update={"children": tuple(children)})
    if not root.children:
        return root

    new_children = tuple(add_child(child, parent_id, new_person, index) for child in root.children)
    if all(new is old for new, old in zip(new_children, root.children)):
        return root
    return root.model_copy(update={"children": new_children})


def delete_node(root: Person, node_id: str) -> Person:
    """Return a new tree without node_id and its subtree.

    The root itself is never removed; callers must refuse deleting it.
    """
    if not root.children:
        return root

    new_children = tuple(
        delete_node(child, node_id) for child in root.children if child.id != node_id
    )
    if len(new_children) == len(root.children) and all(
        new is old for new, old in zip(new_children, root.children)
    ):
        return root
    return root.model_copy(update={"children": new_children})


def is_descendant(root: Person, ancestor_id: str, candidate_id: str) -> bool:
    """True if candidate_id lies in ancestor_id's subtree (a node is in its own subtree)."""
    ancestor = find_node(root, ancestor_id)
    if not ancestor:
        return False
    return find_node(ancestor, candidate_id) is not None


def can_edit(person: Person, owner_code: str | None) -> bool:
    """Whether a family may edit this node (untagged nodes belong to everyone)."""
    if owner_code is None:
        return True
    return not person.origin_family_code or person.origin_family_code == owner_code


def move_rejection_reason(
    root: Person,
    node_id: str,
    new_parent_id: str,
    owner_code: str | None = None,
) -> str | None:
    """Explain why moving node_id under new_parent_id is not permitted, or None if it is."""
    node = find_node(root, node_id)
    if not node:
        return f"Person not found: '{node_id}'"
    if node_id == root.id:
        return "The root ancestor cannot be moved"

    new_parent = find_node(root, new_parent_id)
    if not new_parent:
        return f"Target parent not found: '{new_parent_id}'"
    if is_descendant(root, node_id, new_parent_id):
        return f"Cannot move '{node.name}' under its own descendant '{new_parent.name}'"

    if not can_edit(node, owner_code):
        return f"'{node.name}' belongs to linked family {node.origin_family_code}"
    if not can_edit(new_parent, owner_code):
        return f"'{new_parent.name}' belongs to linked family {new_parent.origin_family_code}"
    return None


def move_node(
    root: Person,
    node_id: str,
    new_parent_id: str,
    owner_code: str | None = None,
    index: int | None = None,
) -> Person | None:
    """
    Move a node (with its whole subtree) under a new parent.

    Returns the new tree, or None when the move is rejected: unknown node or
    target, moving the root, a target inside the node's own subtree, or
    (when owner_code is given) either endpoint owned by another family.
    """
    if move_rejection_reason(root, node_id, new_parent_id, owner_code):
        return None

    subtree = find_node(root, node_id)
    return add_child(delete_node(root, node_id), new_parent_id, subtree, index)


def legal_move_targets(root: Person, node_id: str, owner_code: str | None = None) -> list[Person]:
    """Nodes that node_id could be moved under."""
    if not find_node(root, node_id) or node_id == root.id:
        return []
    return [
        member
        for member in flatten_tree(root)
        if not is_descendant(root, node_id, member.id) and can_edit(member, owner_code)
    ]


def stamp_origin(root: Person, family_code: str) -> Person:
    """Tag every node that has no origin family with family_code."""
    updates: dict[str, Any] = {}
    if not root.origin_family_code:
        updates["origin_family_code"] = family_code
    if root.children:
        updates["children"] = tuple(stamp_origin(child, family_code) for child in root.children)
    return root.model_copy(update=updates) if updates else root
