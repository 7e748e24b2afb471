"""Pure helpers: category hierarchy, paths, roles and formatting"""
from .category_tree import build_category_tree, flatten_tree, get_ancestors, get_descendants
from .category_path import serialize_path, parse_path, format_path_for_display, path_from_ancestors
from .category_validation import MAX_CATEGORY_DEPTH, calculate_depth, validate_depth, validate_no_cycle
from .security import has_minimum_role, get_effective_role, determine_route_access

__all__ = [
    'build_category_tree',
    'flatten_tree',
    'get_ancestors',
    'get_descendants',
    'serialize_path',
    'parse_path',
    'format_path_for_display',
    'path_from_ancestors',
    'MAX_CATEGORY_DEPTH',
    'calculate_depth',
    'validate_depth',
    'validate_no_cycle',
    'has_minimum_role',
    'get_effective_role',
    'determine_route_access'
]
