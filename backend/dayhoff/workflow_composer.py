"""
Workflow Composer

Turns a free-text research goal into a validated, ordered pipeline draft.

Two paths, always ending in a usable draft:
1. AI path: prompt the reasoning service with the full catalog and a strict
   JSON schema, then run the reply through parse_workflow_response(). Any
   parse or catalog failure raises WorkflowResponseError at that one boundary.
2. Fallback path: keyword suggestions, GPU filtering, deterministic layout,
   and edges only between compatible neighbours.

Reasoning-service errors never reach the caller; they degrade to the fallback
path with a warning. Only an empty goal is a caller-visible error.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .compatibility import CompatibilityResolver
from .errors import ReasoningServiceError, ValidationError, WorkflowResponseError
from .goal_suggestion import matched_groups, suggest_modules_for_goal
from .module_catalog import DEFAULT_MODULE_ID, ModuleCatalog, ModuleDescriptor, get_default_catalog
from .reasoning_client import ReasoningClient

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"

# Layout
NODE_X_START = 100
NODE_X_SPACING = 280
NODE_Y = 200

# Fallback confidence is fixed and sits below every AI-derived score
FALLBACK_CONFIDENCE = 0.6
AI_DEFAULT_CONFIDENCE = 0.75
AI_MIN_CONFIDENCE = 0.65

FALLBACK_WARNING = (
    "This workflow was generated using keyword matching (no AI). Configure an "
    "API key for AI-powered workflow design."
)
FALLBACK_KEY_INSIGHT = (
    "This is a basic suggestion. An AI-powered design would consider module "
    "interactions, optimal ordering, and your specific constraints."
)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ComposeConstraints:
    """Optional limits on the composed pipeline."""
    max_time: Optional[str] = None
    gpu_available: Optional[bool] = None

    def to_prompt_text(self) -> str:
        parts = []
        if self.max_time:
            parts.append(f"Max time: {self.max_time}.")
        parts.append("No GPU available." if self.gpu_available is False else "GPU available.")
        return " ".join(parts)


@dataclass
class PipelineNode:
    module_id: str
    name: str
    category: str
    position: Tuple[int, int]
    inputs: List[str]
    outputs: List[str]
    reasoning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "moduleId": self.module_id,
            "name": self.name,
            "category": self.category,
            "position": {"x": self.position[0], "y": self.position[1]},
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
        }
        if self.reasoning is not None:
            d["reasoning"] = self.reasoning
        return d


@dataclass
class PipelineEdge:
    source: int
    target: int
    data_type: str
    learning_annotation: str
    valid: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "dataType": self.data_type,
            "learningAnnotation": self.learning_annotation,
            "valid": self.valid,
        }


@dataclass
class PipelineDraft:
    """A composed pipeline. Rebuilt per request, never edited in place."""
    name: str
    description: str
    nodes: List[PipelineNode]
    edges: List[PipelineEdge]
    confidence: float
    source: str
    warnings: List[str] = field(default_factory=list)
    reasoning: str = ""
    key_insight: str = ""
    socratic_question: Optional[str] = None

    @property
    def module_ids(self) -> List[str]:
        return [n.module_id for n in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": {
                "name": self.name,
                "description": self.description,
                "modules": [n.to_dict() for n in self.nodes],
                "connections": [e.to_dict() for e in self.edges],
            },
            "reasoning": self.reasoning,
            "confidenceScore": self.confidence,
            "warnings": list(self.warnings),
            "keyInsight": self.key_insight,
            "socraticQuestion": self.socratic_question,
            "source": self.source,
        }


@dataclass
class ParsedWorkflow:
    """Reasoning-service reply that passed schema and catalog checks."""
    name: Optional[str]
    description: str
    modules: List[Dict[str, str]]  # moduleId, reasoning
    connections: List[Dict[str, Any]]  # fromIndex, toIndex, dataType
    reasoning: str = ""
    confidence: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    key_insight: str = ""
    socratic_question: Optional[str] = None


# =============================================================================
# Prompts
# =============================================================================

WORKFLOW_SYSTEM_TEMPLATE = """You are a mentor helping a student design a computational biology workflow. Explain WHY each step matters, not just WHAT it does.

You have access to these modules:

{catalog}

IMPORTANT RULES:
- Only use modules from the list above (use their exact id values)
- Modules connect via compatible I/O formats (e.g., PDB output -> PDB input, FASTA output -> FASTA input)
- Each module should have a clear scientific purpose in the pipeline

You MUST respond with valid JSON matching this exact schema:
{{
  "workflow": {{
    "name": "string - concise workflow name",
    "description": "string - one sentence description",
    "modules": [
      {{"moduleId": "string - exact module id from catalog", "reasoning": "string - WHY this module is needed"}}
    ],
    "connections": [
      {{"fromIndex": 0, "toIndex": 1, "dataType": "PDB or FASTA or CSV"}}
    ]
  }},
  "reasoning": "string - overall design rationale",
  "confidenceScore": 0.85,
  "warnings": ["string - potential issues or limitations"],
  "keyInsight": "string - the most important design principle in this workflow"{socratic_field}
}}{socratic_instruction}"""

SOCRATIC_FIELD = ',\n  "socraticQuestion": "string - a question to make the user think about design choices"'
SOCRATIC_INSTRUCTION = (
    '\n- IMPORTANT: Include a "socraticQuestion" field with a thought-provoking question '
    "about experimental design that the user should consider before finalizing."
)

WORKFLOW_USER_TEMPLATE = """Design a workflow for this research goal: "{goal}"
Constraints: {constraints}

Respond ONLY with valid JSON, no markdown or explanation outside the JSON."""


def format_catalog_context(catalog: ModuleCatalog) -> str:
    lines = []
    for m in catalog:
        lines.append(
            f"- {m.id} ({m.display_name}): {m.description} Category: {m.category.value}. "
            f"Input: {', '.join(m.input_formats)}. Output: {', '.join(m.output_formats)}. "
            f"GPU: {'required' if m.compute.gpu else 'not required'}. "
            f"Time: {m.compute.time_estimate}. Key insight: {m.learning.key_insight}"
        )
    return "\n".join(lines)


def build_workflow_prompt(
    goal: str,
    constraints: Optional[ComposeConstraints],
    catalog: ModuleCatalog,
    learning_mode: bool = True,
) -> Tuple[str, str]:
    """Return (system, user) prompts for one composition request."""
    system = WORKFLOW_SYSTEM_TEMPLATE.format(
        catalog=format_catalog_context(catalog),
        socratic_field=SOCRATIC_FIELD if learning_mode else "",
        socratic_instruction=SOCRATIC_INSTRUCTION if learning_mode else "",
    )
    user = WORKFLOW_USER_TEMPLATE.format(
        goal=goal,
        constraints=(constraints or ComposeConstraints()).to_prompt_text(),
    )
    return system, user


# =============================================================================
# Response Parsing
# =============================================================================

def extract_json_text(text: str) -> str:
    """Strip a fenced code block if the reply is wrapped in one."""
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_workflow_response(text: str, catalog: ModuleCatalog) -> ParsedWorkflow:
    """
    Parse a reasoning-service reply or raise WorkflowResponseError.

    This is the only place that decides whether a reply is usable.
    """
    if not text or not text.strip():
        raise WorkflowResponseError("Empty response")

    try:
        data = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise WorkflowResponseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise WorkflowResponseError("Response JSON is not an object")
    workflow = data.get("workflow")
    if not isinstance(workflow, dict):
        raise WorkflowResponseError("Response has no 'workflow' object")

    raw_modules = workflow.get("modules")
    if not isinstance(raw_modules, list) or not raw_modules:
        raise WorkflowResponseError("Workflow has no modules")

    modules = []
    for entry in raw_modules:
        if not isinstance(entry, dict):
            raise WorkflowResponseError("Module entry is not an object")
        module_id = entry.get("moduleId")
        if not isinstance(module_id, str) or module_id not in catalog:
            raise WorkflowResponseError(f"Unknown module id: {module_id!r}")
        reasoning = entry.get("reasoning")
        modules.append({"moduleId": module_id, "reasoning": reasoning if isinstance(reasoning, str) else ""})

    raw_connections = workflow.get("connections") or []
    if not isinstance(raw_connections, list):
        raise WorkflowResponseError("Workflow connections is not a list")
    connections = []
    for entry in raw_connections:
        if not isinstance(entry, dict):
            raise WorkflowResponseError("Connection entry is not an object")
        from_index, to_index = entry.get("fromIndex"), entry.get("toIndex")
        if not (_is_index(from_index) and _is_index(to_index)):
            raise WorkflowResponseError(f"Connection indices must be integers: {entry}")
        connections.append({
            "fromIndex": from_index,
            "toIndex": to_index,
            "dataType": _optional_str(entry.get("dataType")),
        })

    confidence = data.get("confidenceScore")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = None

    warnings = data.get("warnings") or []
    if not isinstance(warnings, list):
        warnings = [str(warnings)]

    return ParsedWorkflow(
        name=_optional_str(workflow.get("name")),
        description=workflow.get("description") if isinstance(workflow.get("description"), str) else "",
        modules=modules,
        connections=connections,
        reasoning=data.get("reasoning") if isinstance(data.get("reasoning"), str) else "",
        confidence=float(confidence) if confidence is not None else None,
        warnings=[str(w) for w in warnings],
        key_insight=data.get("keyInsight") if isinstance(data.get("keyInsight"), str) else "",
        socratic_question=_optional_str(data.get("socraticQuestion")),
    )


# =============================================================================
# Composer
# =============================================================================

def node_position(index: int) -> Tuple[int, int]:
    return (NODE_X_START + index * NODE_X_SPACING, NODE_Y)


def default_workflow_name(goal: str) -> str:
    return f"Workflow for: {goal[:50]}"


class WorkflowComposer:
    """Builds pipeline drafts from research goals."""

    def __init__(
        self,
        catalog: Optional[ModuleCatalog] = None,
        resolver: Optional[CompatibilityResolver] = None,
        reasoning_client: Optional[ReasoningClient] = None,
    ):
        self.catalog = catalog if catalog is not None else get_default_catalog()
        self.resolver = resolver if resolver is not None else CompatibilityResolver(self.catalog)
        self.reasoning_client = reasoning_client

    @property
    def ai_available(self) -> bool:
        return self.reasoning_client is not None

    def compose(
        self,
        goal: str,
        constraints: Optional[ComposeConstraints] = None,
        use_ai: bool = True,
        learning_mode: bool = True,
    ) -> PipelineDraft:
        """
        Compose a pipeline for `goal`.

        Raises:
            ValidationError: goal is missing or blank
        """
        if goal is None or not goal.strip():
            raise ValidationError("Research goal is required")
        goal = goal.strip()

        if not (use_ai and self.ai_available):
            logger.info("Composing workflow with keyword fallback")
            return self.build_fallback_draft(goal, constraints)

        system, prompt = build_workflow_prompt(goal, constraints, self.catalog, learning_mode)
        try:
            text = self.reasoning_client.generate(prompt, system=system)
        except ReasoningServiceError as e:
            logger.warning(f"Reasoning service failed, using fallback: {e}")
            return self.build_fallback_draft(
                goal, constraints,
                extra_warning=f"AI request failed: {e}. Showing keyword-based suggestion.",
            )
        except Exception as e:
            # Injected clients may raise their own transport errors
            logger.exception(f"Unexpected reasoning client error, using fallback: {e}")
            return self.build_fallback_draft(
                goal, constraints,
                extra_warning=f"AI request failed: {e}. Showing keyword-based suggestion.",
            )

        try:
            parsed = parse_workflow_response(text, self.catalog)
        except WorkflowResponseError as e:
            logger.warning(f"Unusable AI workflow response, using fallback: {e}")
            return self.build_fallback_draft(
                goal, constraints,
                extra_warning="AI response could not be parsed. Showing keyword-based suggestion instead.",
            )

        draft = self._build_ai_draft(goal, constraints, parsed, learning_mode)
        logger.info(f"Composed AI workflow with {len(draft.nodes)} modules, {len(draft.edges)} connections")
        return draft

    # -------------------------------------------------------------------------
    # Fallback path
    # -------------------------------------------------------------------------

    def select_fallback_modules(
        self,
        goal: str,
        constraints: Optional[ComposeConstraints] = None,
    ) -> List[ModuleDescriptor]:
        """Keyword candidates after the GPU constraint is applied."""
        suggested = suggest_modules_for_goal(goal) or [DEFAULT_MODULE_ID]
        candidates = [m for m in (self.catalog.get(i) for i in suggested) if m is not None]

        if constraints is not None and constraints.gpu_available is False:
            filtered = [m for m in candidates if not m.requires_gpu]
            if filtered:
                return filtered
            # Partial coverage beats an empty pipeline
            logger.info("All candidates need a GPU; keeping the first two")
            return candidates[:2]
        return candidates

    def build_fallback_draft(
        self,
        goal: str,
        constraints: Optional[ComposeConstraints] = None,
        extra_warning: Optional[str] = None,
    ) -> PipelineDraft:
        modules = self.select_fallback_modules(goal, constraints)
        topics = [g.topic.replace("_", " ") for g in matched_groups(goal)]
        basis = f"matches your goal keywords ({', '.join(topics)})" if topics else "is a general-purpose starting point"

        nodes = []
        for i, m in enumerate(modules):
            nodes.append(self._make_node(
                m, i, reasoning=f"Selected because it {basis}. {m.learning.why_it_matters}",
            ))

        edges = []
        for i in range(len(nodes) - 1):
            result = self.resolver.resolve(nodes[i].module_id, nodes[i + 1].module_id)
            if result.valid:
                edges.append(PipelineEdge(
                    source=i,
                    target=i + 1,
                    data_type=result.data_type,
                    learning_annotation=result.learning_note,
                    valid=True,
                ))

        warnings = [FALLBACK_WARNING]
        if extra_warning:
            warnings.append(extra_warning)

        return PipelineDraft(
            name=default_workflow_name(goal),
            description=f"Auto-generated workflow based on: {goal}",
            nodes=nodes,
            edges=edges,
            confidence=FALLBACK_CONFIDENCE,
            source=SOURCE_FALLBACK,
            warnings=warnings,
            reasoning="\n\n".join(f"Step {i + 1}: {n.name}. {n.reasoning}" for i, n in enumerate(nodes)),
            key_insight=FALLBACK_KEY_INSIGHT,
            socratic_question=None,
        )

    # -------------------------------------------------------------------------
    # AI path
    # -------------------------------------------------------------------------

    def _build_ai_draft(
        self,
        goal: str,
        constraints: Optional[ComposeConstraints],
        parsed: ParsedWorkflow,
        learning_mode: bool,
    ) -> PipelineDraft:
        nodes = [
            self._make_node(self.catalog.get(entry["moduleId"]), i, reasoning=entry["reasoning"])
            for i, entry in enumerate(parsed.modules)
        ]
        warnings = list(parsed.warnings)

        edges = []
        for conn in parsed.connections:
            src, dst = conn["fromIndex"], conn["toIndex"]
            if not (0 <= src < len(nodes) and 0 <= dst < len(nodes)):
                warnings.append(f"Dropped connection {src} -> {dst}: no such module in the workflow.")
                continue
            result = self.resolver.resolve(nodes[src].module_id, nodes[dst].module_id)
            if not result.valid:
                warnings.append(f"{nodes[src].name} -> {nodes[dst].name}: {result.message}")
            edges.append(PipelineEdge(
                source=src,
                target=dst,
                data_type=conn["dataType"] or result.data_type,
                learning_annotation=result.learning_note,
                valid=result.valid,
            ))

        if constraints is not None and constraints.gpu_available is False:
            for node in nodes:
                if self.catalog.get(node.module_id).requires_gpu:
                    warnings.append(f"{node.name} requires a GPU, but no GPU is available.")

        confidence = parsed.confidence if parsed.confidence is not None else AI_DEFAULT_CONFIDENCE
        confidence = min(1.0, max(AI_MIN_CONFIDENCE, confidence))

        return PipelineDraft(
            name=parsed.name or default_workflow_name(goal),
            description=parsed.description,
            nodes=nodes,
            edges=edges,
            confidence=confidence,
            source=SOURCE_AI,
            warnings=warnings,
            reasoning=parsed.reasoning,
            key_insight=parsed.key_insight,
            socratic_question=parsed.socratic_question if learning_mode else None,
        )

    @staticmethod
    def _make_node(module: ModuleDescriptor, index: int, reasoning: Optional[str] = None) -> PipelineNode:
        return PipelineNode(
            module_id=module.id,
            name=module.display_name,
            category=module.category.value,
            position=node_position(index),
            inputs=[f.lower() for f in module.input_formats],
            outputs=[f.lower() for f in module.output_formats],
            reasoning=reasoning,
        )
