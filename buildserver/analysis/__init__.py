"""buildserver.analysis

Static analysis of project descriptor files (forms and blocks).
"""

from .aggregate import DescriptorAnalysis, analyze_project_files
from .catalog import all_component_types, create_name_type_map, load_simple_components
from .descriptors import (
    BlockXmlAnalyzer,
    ComponentBlocksExtractor,
    PermissionBlockExtractor,
    ScopeBlockExtractor,
    analyze_blocks,
    component_types_from_form,
    form_orientation,
)
from .permissions import SCOPE_PERMISSIONS, permissions_for_scopes

__all__ = [
    "DescriptorAnalysis",
    "analyze_project_files",
    "all_component_types",
    "create_name_type_map",
    "load_simple_components",
    "BlockXmlAnalyzer",
    "ComponentBlocksExtractor",
    "PermissionBlockExtractor",
    "ScopeBlockExtractor",
    "analyze_blocks",
    "component_types_from_form",
    "form_orientation",
    "SCOPE_PERMISSIONS",
    "permissions_for_scopes",
]
