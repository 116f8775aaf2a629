"""
Dayhoff Workbench Core

Pipeline composition and mastery progression for the computational biology
learning workbench:
- Module catalog with indexed lookup
- Directed compatibility checks between modules
- Keyword and AI-driven workflow composition with deterministic fallback
- Per-user, per-module skill progression from learning signals
"""

from .compatibility import (
    CompatibilityResolver,
    CompatibilityResult,
    get_compatible_modules,
    validate_module_connection,
)

from .errors import (
    ReasoningServiceError,
    ValidationError,
    WorkflowResponseError,
)

from .goal_suggestion import (
    KEYWORD_GROUPS,
    KeywordGroup,
    suggest_modules_for_goal,
)

from .module_catalog import (
    MODULE_CATALOG,
    ModuleCatalog,
    ModuleCategory,
    ModuleDescriptor,
    get_module_by_id,
)

from .progress_engine import MasteryProgressionEngine

from .progress_store import (
    InMemoryProgressStore,
    JsonProgressStore,
    MasteryRecord,
    SkillLevel,
)

from .workflow_composer import (
    ComposeConstraints,
    PipelineDraft,
    PipelineEdge,
    PipelineNode,
    WorkflowComposer,
    parse_workflow_response,
)

__all__ = [
    # Catalog
    "MODULE_CATALOG",
    "ModuleCatalog",
    "ModuleCategory",
    "ModuleDescriptor",
    "get_module_by_id",
    # Compatibility
    "CompatibilityResolver",
    "CompatibilityResult",
    "get_compatible_modules",
    "validate_module_connection",
    # Goal suggestion
    "KEYWORD_GROUPS",
    "KeywordGroup",
    "suggest_modules_for_goal",
    # Composition
    "ComposeConstraints",
    "PipelineDraft",
    "PipelineEdge",
    "PipelineNode",
    "WorkflowComposer",
    "parse_workflow_response",
    # Progression
    "InMemoryProgressStore",
    "JsonProgressStore",
    "MasteryProgressionEngine",
    "MasteryRecord",
    "SkillLevel",
    # Errors
    "ReasoningServiceError",
    "ValidationError",
    "WorkflowResponseError",
]
