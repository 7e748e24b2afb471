# blogdesk/utils/category_tree.py
from collections import deque
from typing import Any, Dict, Iterable, List, Union
from ..models.category import CategoryNode

CategoryLike = Union[CategoryNode, Dict[str, Any]]

def as_category_node(category: CategoryLike) -> CategoryNode:
    if isinstance(category, CategoryNode):
        return category
    return CategoryNode.model_validate(category)

def _leads_back(node: CategoryNode, by_id: Dict[str, CategoryNode]) -> bool:
    # following parent links from node comes back to node
    seen = set()
    current_id = node.parent_id
    while current_id is not None and current_id not in seen:
        if current_id == node.id:
            return True
        seen.add(current_id)
        parent = by_id.get(current_id)
        current_id = parent.parent_id if parent is not None else None
    return False

def build_category_tree(categories: Iterable[CategoryLike]) -> List[CategoryNode]:
    """Nest a flat category list under its roots

    Every record appears exactly once in the result. Records whose parent
    is missing from the list are treated as roots, as are records caught
    in a parent cycle. The input is not modified; the returned nodes are
    copies.
    """
    nodes = [as_category_node(c).model_copy(update={"children": []}) for c in categories or []]
    if not nodes:
        return []

    by_id: Dict[str, CategoryNode] = {}
    for node in nodes:
        by_id.setdefault(node.id, node)

    roots: List[CategoryNode] = []
    for node in nodes:
        parent = by_id.get(node.parent_id) if node.parent_id is not None else None
        if parent is None or _leads_back(node, by_id):
            roots.append(node)
        else:
            parent.children.append(node)

    return roots

def flatten_tree(tree: Iterable[CategoryNode]) -> List[CategoryNode]:
    """Pre-order walk of a built tree; emitted nodes have no children"""
    result: List[CategoryNode] = []

    def traverse(nodes: Iterable[CategoryNode]):
        for node in nodes:
            result.append(node.model_copy(update={"children": []}))
            if node.children:
                traverse(node.children)

    traverse(tree or [])
    return result

def get_ancestors(category_id: str, categories: Iterable[CategoryLike]) -> List[CategoryNode]:
    """Ancestors of a category ordered from root to direct parent

    Unknown ids and roots both give an empty list.
    """
    by_id: Dict[str, CategoryNode] = {}
    for category in categories or []:
        node = as_category_node(category)
        by_id.setdefault(node.id, node)

    category = by_id.get(category_id)
    if category is None:
        return []

    ancestors: List[CategoryNode] = []
    seen = {category.id}
    current_parent_id = category.parent_id

    while current_parent_id is not None and current_parent_id not in seen:
        parent = by_id.get(current_parent_id)
        if parent is None:
            break
        ancestors.append(parent)
        seen.add(parent.id)
        current_parent_id = parent.parent_id

    ancestors.reverse()
    return ancestors

def get_descendants(category_id: str, categories: Iterable[CategoryLike]) -> List[CategoryNode]:
    """Children, grandchildren and so on, breadth first"""
    children_of: Dict[str, List[CategoryNode]] = {}
    for category in categories or []:
        node = as_category_node(category)
        if node.parent_id is not None:
            children_of.setdefault(node.parent_id, []).append(node)

    descendants: List[CategoryNode] = []
    seen = {category_id}
    queue = deque([category_id])

    while queue:
        current_id = queue.popleft()
        for child in children_of.get(current_id, []):
            if child.id in seen:
                continue
            seen.add(child.id)
            descendants.append(child)
            queue.append(child.id)

    return descendants
