# blogdesk/utils/category_validation.py
from typing import Iterable, List, Optional
from ..models.category import CategoryNode
from .category_tree import CategoryLike, as_category_node, get_descendants

# 0-indexed: root, child, grandchild
MAX_CATEGORY_DEPTH = 2

def calculate_depth(parent_id: Optional[str], categories: Iterable[CategoryLike]) -> int:
    """Depth a new category gets under parent_id

    An unknown parent counts as no parent.
    """
    if parent_id is None:
        return 0

    for category in categories or []:
        node = as_category_node(category)
        if node.id == parent_id:
            return node.depth + 1
    return 0

def validate_depth(parent_id: Optional[str], categories: Iterable[CategoryLike]) -> bool:
    return calculate_depth(parent_id, categories) <= MAX_CATEGORY_DEPTH

def validate_no_cycle(category_id: str, new_parent_id: str,
                      categories: Iterable[CategoryLike]) -> bool:
    """Whether moving category_id under new_parent_id keeps the tree acyclic"""
    if category_id == new_parent_id:
        return False

    nodes: List[CategoryNode] = [as_category_node(c) for c in categories or []]
    return all(d.id != new_parent_id for d in get_descendants(category_id, nodes))
