# blogdesk/utils/category_path.py
from typing import Iterable
from ..models.category import CategoryNode, CategoryPath

# URL form, e.g. "Technology/Web Development/React"
PATH_DELIMITER = "/"
# Breadcrumb form, never parsed back
DISPLAY_DELIMITER = " > "

def serialize_path(path: CategoryPath) -> str:
    """Join path segments for use in URLs"""
    if not path.segments:
        return ""
    return PATH_DELIMITER.join(path.segments)

def parse_path(path_string: str) -> CategoryPath:
    """Split a serialized path; ids cannot be recovered and come back empty"""
    if not path_string or not path_string.strip():
        return CategoryPath(segments=[], ids=[])
    return CategoryPath(segments=path_string.split(PATH_DELIMITER), ids=[])

def format_path_for_display(path: CategoryPath) -> str:
    if not path.segments:
        return ""
    return DISPLAY_DELIMITER.join(path.segments)

def path_from_ancestors(chain: Iterable[CategoryNode]) -> CategoryPath:
    """Path for a root-first chain of categories"""
    nodes = list(chain)
    return CategoryPath(
        segments=[node.name for node in nodes],
        ids=[node.id for node in nodes]
    )
