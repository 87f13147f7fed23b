"""Tests for tree search, paths and copy-on-write mutation."""

from datetime import date

import pytest

from models import Person, normalize_date
from tree_utils import (
    add_child,
    birth_year,
    can_edit,
    count_children_gender,
    delete_node,
    find_node,
    find_node_by_name_and_year,
    find_parent,
    find_path,
    flatten_tree,
    is_descendant,
    legal_move_targets,
    lowest_common_ancestor_depth,
    move_node,
    move_rejection_reason,
    replace_node,
    search_members,
    split_depths,
    stamp_origin,
    update_node,
)


def ids(people):
    return [p.id for p in people]


# ============================================================================
# Date Normalization Tests
# ============================================================================

class TestNormalizeDate:
    """Tests for normalizing dates to YYYY-MM-DD."""

    def test_separators(self):
        assert normalize_date("1990/6/25") == "1990-06-25"
        assert normalize_date("1990.6.25") == "1990-06-25"
        assert normalize_date("1990-06-25") == "1990-06-25"

    def test_partial_dates(self):
        assert normalize_date("1965") == "1965-01-01"
        assert normalize_date("1965-5") == "1965-05-01"

    def test_timestamp_is_cut_to_date(self):
        assert normalize_date("1990-06-25T08:30:00") == "1990-06-25"

    def test_excel_serial(self):
        """Excel serial 25569 is 1970-01-01."""
        assert normalize_date(25569) == "1970-01-01"

    def test_date_objects(self):
        assert normalize_date(date(2000, 1, 2)) == "2000-01-02"

    def test_empty_and_unparseable(self):
        assert normalize_date(None) == ""
        assert normalize_date("") == ""
        assert normalize_date("not a date") == "not a date"
        assert normalize_date("1990-02-30") == "1990-02-30"

    def test_person_dates_normalized_on_construction(self):
        person = Person(id="x", name="X", birth_date="1980/5/2", death_date="")
        assert person.birth_date == "1980-05-02"
        assert person.death_date is None
        assert person.is_living


# ============================================================================
# Search Tests
# ============================================================================

class TestSearch:
    """Tests for finding nodes."""

    def test_flatten_tree_preorder(self, chen_root):
        assert ids(flatten_tree(chen_root)) == ["root", "c1", "g1", "gg1", "g2", "c2", "g3"]

    def test_find_node(self, chen_root):
        assert find_node(chen_root, "g3").name == "张强"
        assert find_node(chen_root, "missing") is None

    def test_find_parent(self, chen_root):
        assert find_parent(chen_root, "gg1").id == "g1"
        assert find_parent(chen_root, "root") is None

    def test_find_node_by_name_and_year(self, chen_root):
        assert find_node_by_name_and_year(chen_root, "陈建国", "1965").id == "c1"
        assert find_node_by_name_and_year(chen_root, "陈建国", "1966") is None
        assert find_node_by_name_and_year(chen_root, "陈建", "1965") is None

    def test_birth_year(self, chen_root):
        assert birth_year(chen_root) == "1940"
        assert birth_year(Person(id="x", name="X")) == ""

    def test_search_members(self, chen_root):
        assert ids(search_members(chen_root, "陈小")) == ["g1", "gg1", "g2"]
        assert search_members(chen_root, "  ") == []

    def test_count_children_gender(self, chen_root):
        assert count_children_gender(chen_root.children) == (1, 1)
        assert count_children_gender(find_node(chen_root, "c1").children) == (1, 1)


# ============================================================================
# Path / LCA Tests
# ============================================================================

class TestPaths:
    """Tests for root paths and lowest common ancestors."""

    def test_find_path(self, chen_root):
        assert ids(find_path(chen_root, "gg1")) == ["root", "c1", "g1", "gg1"]
        assert ids(find_path(chen_root, "root")) == ["root"]

    def test_find_path_missing(self, chen_root):
        assert find_path(chen_root, "nobody") is None

    def test_lca_cousins(self, chen_root):
        path_a = find_path(chen_root, "g1")
        path_b = find_path(chen_root, "g3")
        assert lowest_common_ancestor_depth(path_a, path_b) == 1
        assert split_depths(path_a, path_b) == (1, 2, 2)

    def test_lca_direct_line(self, chen_root):
        path_a = find_path(chen_root, "c1")
        path_b = find_path(chen_root, "gg1")
        assert split_depths(path_a, path_b) == (2, 0, 2)

    def test_lca_same_node(self, chen_root):
        path = find_path(chen_root, "g2")
        assert split_depths(path, path) == (3, 0, 0)


# ============================================================================
# Mutation Tests
# ============================================================================

class TestUpdateNode:
    """Tests for copy-on-write updates."""

    def test_update_returns_new_tree(self, chen_root):
        updated = update_node(chen_root, "g2", {"name": "陈红"})
        assert find_node(updated, "g2").name == "陈红"
        assert find_node(chen_root, "g2").name == "陈小红"

    def test_update_normalizes_dates(self, chen_root):
        updated = update_node(chen_root, "c1", {"birth_date": "1965/5/21", "deathDate": "2030.1.2"})
        node = find_node(updated, "c1")
        assert node.birth_date == "1965-05-21"
        assert node.death_date == "2030-01-02"

    def test_update_keeps_children(self, chen_root):
        updated = update_node(chen_root, "c1", {"spouse": None})
        node = find_node(updated, "c1")
        assert node.spouse is None
        assert ids(node.children) == ["g1", "g2"]

    def test_update_unknown_id_is_noop(self, chen_root):
        assert update_node(chen_root, "missing", {"name": "X"}) is chen_root

    def test_untouched_branches_are_shared(self, chen_root):
        updated = update_node(chen_root, "g3", {"name": "张小强"})
        assert updated.children[0] is chen_root.children[0]

    def test_replace_node_matches_identity_not_id(self):
        """Two nodes share an id; only the given object is replaced."""
        first = Person(id="p1", name="张三", birth_date="1950-01-01")
        second = Person(id="p1", name="李小", birth_date="1980-01-01")
        tree = Person(id="r", name="R", children=(first, Person(id="q1", name="李四", children=(second,))))

        updated = replace_node(tree, second, second.model_copy(update={"name": "李小二"}))
        assert [p.name for p in flatten_tree(updated)] == ["R", "张三", "李四", "李小二"]
        assert updated.children[0] is first

    def test_replace_node_not_in_tree(self, chen_root):
        stranger = Person(id="g1", name="陈小明", birth_date="1992-08-15")
        assert replace_node(chen_root, stranger, stranger) is chen_root


class TestAddDelete:
    """Tests for inserting and deleting nodes."""

    def test_add_child_appends(self, chen_root):
        baby = Person(id="new", name="陈宝宝", gender="female", birth_date="2023-01-01")
        updated = add_child(chen_root, "g2", baby)
        assert ids(find_node(updated, "g2").children) == ["new"]
        assert find_node(chen_root, "new") is None

    def test_add_child_at_index(self, chen_root):
        baby = Person(id="new", name="陈宝宝", birth_date="2023-01-01")
        updated = add_child(chen_root, "c1", baby, index=0)
        assert ids(find_node(updated, "c1").children) == ["new", "g1", "g2"]

    def test_add_child_missing_parent(self, chen_root):
        baby = Person(id="new", name="陈宝宝")
        assert add_child(chen_root, "missing", baby) is chen_root

    def test_delete_removes_subtree(self, chen_root):
        updated = delete_node(chen_root, "g1")
        assert find_node(updated, "g1") is None
        assert find_node(updated, "gg1") is None
        assert find_node(chen_root, "gg1") is not None

    def test_delete_root_is_noop(self, chen_root):
        assert delete_node(chen_root, "root") is chen_root


class TestMoveNode:
    """Tests for moving subtrees."""

    def test_move_keeps_descendants(self, chen_root):
        moved = move_node(chen_root, "g1", "c2")
        assert ids(find_node(moved, "c2").children) == ["g3", "g1"]
        assert ids(find_node(moved, "g1").children) == ["gg1"]
        assert ids(find_node(moved, "c1").children) == ["g2"]

    def test_move_round_trip(self, chen_root):
        """Moving back to the original parent and position restores the tree."""
        moved = move_node(chen_root, "g1", "c2")
        restored = move_node(moved, "g1", "c1", index=0)
        assert restored == chen_root

    def test_move_into_own_subtree_rejected(self, chen_root):
        assert move_node(chen_root, "c1", "gg1") is None
        assert move_node(chen_root, "c1", "c1") is None
        assert "descendant" in move_rejection_reason(chen_root, "c1", "gg1")

    def test_move_root_rejected(self, chen_root):
        assert move_node(chen_root, "root", "c1") is None

    def test_move_missing_endpoints_rejected(self, chen_root):
        assert move_node(chen_root, "missing", "c1") is None
        assert move_node(chen_root, "g1", "missing") is None
        assert find_node(chen_root, "g1") is not None

    def test_descendant_implies_rejection(self, chen_root):
        members = ids(flatten_tree(chen_root))
        for x in members:
            for y in members:
                if x != y and is_descendant(chen_root, x, y):
                    assert move_node(chen_root, x, y) is None

    def test_cross_family_move_rejected(self, chen_root):
        tree = update_node(chen_root, "c2", {"origin_family_code": "OTHER"})
        assert move_node(tree, "g1", "c2", owner_code="MINE") is None
        assert "linked family OTHER" in move_rejection_reason(tree, "g1", "c2", owner_code="MINE")
        assert move_node(tree, "g1", "c2", owner_code="OTHER") is not None
        assert move_node(tree, "g1", "c2") is not None


class TestDescendantsAndOwnership:
    """Tests for subtree membership, move targets and ownership tags."""

    def test_is_descendant(self, chen_root):
        assert is_descendant(chen_root, "c1", "gg1")
        assert is_descendant(chen_root, "c1", "c1")
        assert not is_descendant(chen_root, "c1", "g3")
        assert not is_descendant(chen_root, "missing", "g3")

    def test_legal_move_targets(self, chen_root):
        assert ids(legal_move_targets(chen_root, "c1")) == ["root", "c2", "g3"]
        assert legal_move_targets(chen_root, "root") == []

    def test_legal_move_targets_skip_other_families(self, chen_root):
        tree = update_node(chen_root, "c2", {"origin_family_code": "OTHER"})
        assert ids(legal_move_targets(tree, "g1", owner_code="MINE")) == ["root", "c1", "g2", "g3"]

    def test_can_edit(self):
        native = Person(id="a", name="A")
        mine = Person(id="b", name="B", origin_family_code="MINE")
        theirs = Person(id="c", name="C", origin_family_code="OTHER")
        assert can_edit(native, "MINE")
        assert can_edit(mine, "MINE")
        assert not can_edit(theirs, "MINE")
        assert can_edit(theirs, None)

    def test_stamp_origin(self, chen_root):
        tree = update_node(chen_root, "g3", {"origin_family_code": "OTHER"})
        stamped = stamp_origin(tree, "CHEN")
        assert {p.origin_family_code for p in flatten_tree(stamped)} == {"CHEN", "OTHER"}
        assert find_node(stamped, "g3").origin_family_code == "OTHER"
