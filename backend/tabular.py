"""Build family trees from spreadsheet-style rows and project them back.

Rows are plain dicts keyed by column header; reading or writing an actual
spreadsheet file is left to the caller.
"""

import logging
import uuid
from typing import Any

from models import Person, normalize_date

logger = logging.getLogger("clanlink.tabular")


# Accepted column headers per field, compared after removing all whitespace
COLUMN_SYNONYMS: dict[str, list[str]] = {
    "name": ["名称", "姓名", "名字"],
    "gender": ["性别"],
    "birth_date": ["出生日期", "生日", "生辰", "出生"],
    "death_date": ["离世日期", "离世", "忌日", "死亡日期"],
    "spouse": ["配偶", "配偶姓名", "妻子", "丈夫"],
    "spouse_birth_date": ["配偶出生日期", "配偶生日", "配偶出生", "配偶生辰", "妻出生", "夫出生"],
    "spouse_death_date": ["配偶离世日期", "配偶离世", "配偶死亡", "配偶忌日", "配偶卒于"],
    "father": ["父亲", "爸爸", "父"],
    "mother": ["母亲", "妈妈", "母"],
}

FEMALE_VALUES = {"女", "female", "f"}

# Example rows in the import template carry this marker in the name column
TEMPLATE_MARKER = "格式说明"


def get_column(row: dict[str, Any], field: str) -> Any:
    """Value of the first column whose header is a synonym of field."""
    candidates = COLUMN_SYNONYMS[field]
    for key, value in row.items():
        if "".join(str(key).split()) in candidates:
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def rows_to_tree(rows: list[dict[str, Any]]) -> tuple[Person, str] | None:
    """
    Build a tree from rows; returns (root, family_name) or None when empty.

    Each child is attached to its father when he is in the rows, otherwise to
    its mother. The root is the first person whose parents are not in the rows.
    """
    people: dict[str, dict[str, Any]] = {}
    parents: dict[str, tuple[str, str]] = {}

    for index, row in enumerate(rows):
        name = _text(get_column(row, "name"))
        if not name or name == TEMPLATE_MARKER:
            continue

        gender_raw = _text(get_column(row, "gender")) or "男"
        spouse = _text(get_column(row, "spouse"))
        people[name] = {
            "id": f"p_{index}_{uuid.uuid4().hex[:5]}",
            "name": name,
            "gender": "female" if gender_raw.lower() in FEMALE_VALUES else "male",
            "birth_date": normalize_date(get_column(row, "birth_date")),
            "death_date": normalize_date(get_column(row, "death_date")) or None,
            "spouse": spouse or None,
            "spouse_birth_date": normalize_date(get_column(row, "spouse_birth_date")) or None,
            "spouse_death_date": normalize_date(get_column(row, "spouse_death_date")) or None,
        }
        if spouse:
            logger.info(f"Row {index + 1}: found spouse '{spouse}' for '{name}'")

        father = _text(get_column(row, "father"))
        mother = _text(get_column(row, "mother"))
        if father or mother:
            parents[name] = (father, mother)

    if not people:
        return None

    children_of: dict[str, list[str]] = {name: [] for name in people}
    has_parent: set[str] = set()
    for child_name, (father, mother) in parents.items():
        parent_name = father if father in people else mother if mother in people else None
        if parent_name is None:
            logger.warning(f"Child {child_name} has parents listed ({father}, {mother}) but they are not in the rows")
            continue
        children_of[parent_name].append(child_name)
        has_parent.add(child_name)

    roots = [name for name in people if name not in has_parent]
    if not roots:
        # Every row names a parent that is present: a cycle in the rows
        logger.warning("No row without a parent found; using the first row as root")
        roots = [next(iter(people))]
    elif len(roots) > 1:
        logger.warning(f"Found multiple potential roots: {', '.join(roots)}. Using {roots[0]}.")

    def build(name: str, seen: frozenset[str]) -> Person:
        kids = [build(c, seen | {c}) for c in children_of[name] if c not in seen]
        return Person(**people[name], children=tuple(kids))

    root = build(roots[0], frozenset({roots[0]}))
    return root, f"{root.name[:1]}氏家族"


def tree_to_rows(root: Person) -> list[dict[str, str]]:
    """One row per member, parents named from the parent node and its spouse."""
    rows: list[dict[str, str]] = []

    def traverse(node: Person, father: str = "", mother: str = ""):
        rows.append({
            "名称": node.name,
            "性别": "男" if node.gender == "male" else "女",
            "出生日期": node.birth_date,
            "离世日期": node.death_date or "",
            "配偶": node.spouse or "",
            "配偶出生日期": node.spouse_birth_date or "",
            "配偶离世日期": node.spouse_death_date or "",
            "父亲": father,
            "母亲": mother,
        })
        for child in node.children:
            if node.gender == "male":
                traverse(child, node.name, node.spouse or "")
            else:
                traverse(child, node.spouse or "", node.name)

    traverse(root)
    return rows
