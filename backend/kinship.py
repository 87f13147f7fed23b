"""Chinese kinship labels derived from tree topology and birth dates.

Generations are counted as edges from the lowest common ancestor (LCA) of the
two people. The labels follow the usual distinctions of the Chinese kinship
system: paternal (堂) versus non-paternal (表) lines, father's versus mother's
side, and elder versus younger within a generation.
"""

from typing import Any

from models import Person, parse_date
from tree_utils import find_node, find_path, split_depths


SELF_LABEL = "我"
RELATIVE_LABEL = "亲戚"
SPOUSE_LABEL = "配偶"


def is_older(a: Person, b: Person) -> bool:
    """True if a was born strictly before b. Unknown birth dates are never older."""
    date_a = parse_date(a.birth_date)
    date_b = parse_date(b.birth_date)
    if date_a is None or date_b is None:
        return False
    return date_a < date_b


def _is_male(person: Person) -> bool:
    return person.gender == "male"


# ============================================================================
# Relationship Label
# ============================================================================

def relationship_label(root: Person, me_id: str, target_id: str) -> str:
    """
    What target is to me, as a Chinese kinship term.

    Returns "我" for the same id, "" when either id is not in the tree, and
    the generic "亲戚" for combinations outside the known table.
    """
    if me_id == target_id:
        return SELF_LABEL

    path_me = find_path(root, me_id)
    path_target = find_path(root, target_id)
    if not path_me or not path_target:
        return ""

    lca, depth_me, depth_target = split_depths(path_me, path_target)
    me = path_me[-1]
    target = path_target[-1]

    # Direct line: I am the ancestor
    if depth_me == 0:
        if depth_target == 1:
            return "儿子" if _is_male(target) else "女儿"
        if depth_target == 2:
            my_child = path_target[lca]
            if _is_male(my_child):
                return "孙子" if _is_male(target) else "孙女"
            return "外孙" if _is_male(target) else "外孙女"
        return "晚辈"

    # Direct line: target is the ancestor
    if depth_target == 0:
        if depth_me == 1:
            return "父亲" if _is_male(target) else "母亲"
        if depth_me == 2:
            my_parent = path_me[lca]
            if _is_male(my_parent):
                return "祖父" if _is_male(target) else "祖母"
            return "外祖父" if _is_male(target) else "外祖母"
        if depth_me == 3:
            return "曾祖辈"
        return RELATIVE_LABEL

    if depth_me == 1 and depth_target == 1:
        return _sibling_label(me, target)

    if depth_me == 2 and depth_target == 2:
        return _cousin_label(path_me[lca], path_target[lca], me, target)

    if depth_me == 2 and depth_target == 1:
        return _parent_sibling_label(path_me[lca], target)

    if depth_me == 1 and depth_target == 2:
        return _sibling_child_label(path_target[lca], target)

    if depth_me == 3 and depth_target == 1:
        return _grandparent_sibling_label(path_me[lca], path_me[lca + 1], target)

    return RELATIVE_LABEL


def _sibling_label(me: Person, target: Person) -> str:
    if _is_male(target):
        return "哥哥" if is_older(target, me) else "弟弟"
    return "姐姐" if is_older(target, me) else "妹妹"


def _cousin_label(my_parent: Person, target_parent: Person, me: Person, target: Person) -> str:
    # 堂 only when both connecting parents are sons of the LCA
    prefix = "堂" if _is_male(my_parent) and _is_male(target_parent) else "表"
    if _is_male(target):
        return prefix + ("兄" if is_older(target, me) else "弟")
    return prefix + ("姐" if is_older(target, me) else "妹")


def _parent_sibling_label(my_parent: Person, target: Person) -> str:
    if _is_male(my_parent):
        if _is_male(target):
            return "伯父" if is_older(target, my_parent) else "叔叔"
        return "姑姑"
    return "舅舅" if _is_male(target) else "姨妈"


def _sibling_child_label(my_sibling: Person, target: Person) -> str:
    if _is_male(my_sibling):
        return "侄子" if _is_male(target) else "侄女"
    return "外甥" if _is_male(target) else "外甥女"


def _grandparent_sibling_label(my_grandparent: Person, my_parent: Person, target: Person) -> str:
    if _is_male(my_parent) and _is_male(my_grandparent):
        if _is_male(target):
            return "伯公" if is_older(target, my_grandparent) else "叔公"
        return "姑婆"
    if _is_male(my_parent):
        return "舅公" if _is_male(target) else "姨婆"
    return "外舅公" if _is_male(target) else "外姨婆"


# ============================================================================
# Spouse Titles
# ============================================================================

SPOUSE_TITLES: dict[str, str] = {
    "父亲": "母亲",
    "母亲": "父亲",
    "祖父": "祖母",
    "祖母": "祖父",
    "外祖父": "外祖母",
    "外祖母": "外祖父",
    "哥哥": "嫂子",
    "弟弟": "弟妹",
    "姐姐": "姐夫",
    "妹妹": "妹夫",
    "伯父": "伯母",
    "叔叔": "婶婶",
    "姑姑": "姑父",
    "舅舅": "舅妈",
    "姨妈": "姨父",
    "伯公": "伯婆",
    "叔公": "叔婆",
    "姑婆": "姑公",
    "舅公": "舅婆",
    "姨婆": "姨公",
    "儿子": "儿媳",
    "女儿": "女婿",
    "孙子": "孙媳",
    "孙女": "孙婿",
    "外孙": "外孙媳",
    "外孙女": "外孙女婿",
    "侄子": "侄媳",
    "侄女": "侄女婿",
    "外甥": "外甥媳",
    "外甥女": "外甥女婿",
}

# Cousin titles follow the elder/younger sibling pattern for either line
COUSIN_SPOUSE_TITLES: dict[str, str] = {
    "兄": "嫂子",
    "弟": "弟妹",
    "姐": "姐夫",
    "妹": "妹夫",
}


def spouse_title(blood_label: str) -> str:
    """Title for the spouse of a relative with the given blood relationship label."""
    if blood_label in SPOUSE_TITLES:
        return SPOUSE_TITLES[blood_label]
    if len(blood_label) == 2 and blood_label[0] in ("堂", "表"):
        return COUSIN_SPOUSE_TITLES.get(blood_label[1], SPOUSE_LABEL)
    return SPOUSE_LABEL


def describe_relationship(root: Person, me_id: str, target_id: str) -> dict[str, Any]:
    """Relationship label of target plus the title of target's spouse, if recorded."""
    label = relationship_label(root, me_id, target_id)
    target = find_node(root, target_id)

    result: dict[str, Any] = {"label": label, "spouseTitle": None}
    if label and target and target.spouse:
        result["spouseTitle"] = spouse_title(label)
    return result
