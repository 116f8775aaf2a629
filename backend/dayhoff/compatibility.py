"""
Compatibility Resolver

Decides whether one module's output can feed another module's input and
explains the answer for learners.

A connection A -> B is valid when A's output formats intersect B's input
formats. The relation is directional: resolve(A, B) and resolve(B, A) can
disagree. Curated notes for an ordered pair always take precedence over the
note synthesised from the two descriptors.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

from .module_catalog import ModuleCatalog, ModuleDescriptor, get_default_catalog

logger = logging.getLogger(__name__)

UPSTREAM = "upstream"
DOWNSTREAM = "downstream"

COMPATIBLE_PREFIX = "Compatible via "


@dataclass(frozen=True)
class CompatibilityResult:
    """Outcome of checking a directed module connection."""
    valid: bool
    message: str
    learning_note: str
    formats: Tuple[str, ...] = ()

    @property
    def data_type(self) -> str:
        """Negotiated format string, e.g. "PDB, FASTA"."""
        return ", ".join(self.formats)

    def to_dict(self) -> Dict[str, object]:
        d = asdict(self)
        d["formats"] = list(self.formats)
        return d


MODULE_NOT_FOUND = CompatibilityResult(valid=False, message="Module not found", learning_note="")


# =============================================================================
# Curated Learning Notes
# =============================================================================
# Keyed by (from_id, to_id). {src} and {dst} are replaced by display names.

COMPATIBLE_NOTES: Dict[Tuple[str, str], str] = {
    ("rfdiffusion", "proteinmpnn"): (
        "{src} generates 3D backbone structures (PDB) -> {dst} designs amino acid "
        "sequences that will fold into them (FASTA). This is the classic "
        "generate-then-design pipeline."
    ),
    ("proteinmpnn", "alphafold2"): (
        "{src} outputs designed sequences (FASTA) -> {dst} predicts whether those "
        "sequences fold into the intended structure. This is the validation step."
    ),
    ("proteinmpnn", "esmfold"): (
        "{src} outputs designed sequences (FASTA) -> {dst} quickly predicts their "
        "structures. Use it for rapid screening before the more accurate AlphaFold2."
    ),
    ("proteinmpnn", "evoprotgrad"): (
        "{src} outputs designed sequences (FASTA) -> {dst} optimizes them further "
        "through directed evolution."
    ),
    ("proteinmpnn", "temstapro"): (
        "{src} outputs designed sequences (FASTA) -> {dst} checks whether they "
        "produce thermostable proteins. Catching instability early saves wet lab failures."
    ),
    ("alphafold2", "rfdiffusion"): (
        "{src} provides validated structures (PDB) -> {dst} can use them as templates "
        "for novel variants. Useful for scaffold-based design."
    ),
    ("alphafold2", "proteinmpnn"): (
        "{src} predicts structure (PDB) -> {dst} redesigns sequences for that "
        "structure. Useful for redesigning natural proteins."
    ),
    ("alphafold2", "geodock"): (
        "{src} predicts protein structure (PDB) -> {dst} predicts how the protein "
        "interacts with binding partners."
    ),
    ("alphafold2", "rfantibody"): (
        "{src} provides the target structure (PDB) -> {dst} designs antibodies "
        "against it. Structural detail guides CDR design."
    ),
    ("esmfold", "proteinmpnn"): (
        "{src} predicts structure (PDB) -> {dst} redesigns sequences. A fast "
        "predict-then-redesign loop."
    ),
    ("esmfold", "geodock"): (
        "{src} predicts protein structure (PDB) -> {dst} docks it against binding partners."
    ),
    ("esmfold", "rfantibody"): (
        "{src} provides a quick target structure prediction (PDB) -> {dst} designs "
        "antibodies against the predicted target."
    ),
    ("evoprotgrad", "alphafold2"): (
        "{src} outputs optimized sequences (FASTA) -> {dst} validates that they still "
        "fold correctly. Mutations that improve one property can destabilize the fold."
    ),
    ("evoprotgrad", "esmfold"): (
        "{src} outputs optimized sequences (FASTA) -> {dst} quickly checks that they "
        "keep their structure."
    ),
    ("evoprotgrad", "temstapro"): (
        "{src} outputs optimized sequences (FASTA) -> {dst} checks their "
        "thermostability. Directed evolution can inadvertently reduce stability."
    ),
    ("rfantibody", "temstapro"): (
        "{src} outputs designed antibody sequences (FASTA) -> {dst} assesses their "
        "thermostability. Therapeutic antibodies need to be stable."
    ),
    ("rfantibody", "geodock"): (
        "{src} outputs designed antibody structures (PDB) -> {dst} validates binding "
        "to the target through docking."
    ),
}

INCOMPATIBLE_NOTES: Dict[Tuple[str, str], str] = {
    ("rfdiffusion", "alphafold2"): (
        "{src} outputs PDB structures, but {dst} expects FASTA sequences. You need a "
        "structure-to-sequence step (like ProteinMPNN) in between."
    ),
    ("rfdiffusion", "esmfold"): (
        "{src} outputs PDB structures, but {dst} expects FASTA sequences. Insert "
        "ProteinMPNN between them to design sequences for the generated backbones."
    ),
    ("rfdiffusion", "temstapro"): (
        "{src} outputs PDB structures, but {dst} expects FASTA sequences. Run "
        "ProteinMPNN first, then TemStaPro can assess stability."
    ),
    ("rfdiffusion", "evoprotgrad"): (
        "{src} outputs PDB structures, but {dst} expects FASTA sequences. Use "
        "ProteinMPNN to generate sequences from the backbone first."
    ),
    ("geodock", "proteinmpnn"): (
        "{src} outputs docked complex structures and scores, but {dst} expects "
        "single-chain PDB structures. Extract individual chains from the complex first."
    ),
}


def _shared_formats(source: ModuleDescriptor, target: ModuleDescriptor) -> Tuple[str, ...]:
    accepted = set(target.input_formats)
    return tuple(fmt for fmt in source.output_formats if fmt in accepted)


# =============================================================================
# Resolver
# =============================================================================

class CompatibilityResolver:
    """Checks directed connections against a module catalog."""

    def __init__(
        self,
        catalog: Optional[ModuleCatalog] = None,
        compatible_notes: Optional[Dict[Tuple[str, str], str]] = None,
        incompatible_notes: Optional[Dict[Tuple[str, str], str]] = None,
    ):
        self.catalog = catalog if catalog is not None else get_default_catalog()
        self.compatible_notes = COMPATIBLE_NOTES if compatible_notes is None else compatible_notes
        self.incompatible_notes = INCOMPATIBLE_NOTES if incompatible_notes is None else incompatible_notes

    def resolve(self, from_id: str, to_id: str) -> CompatibilityResult:
        """
        Check whether `from_id` can feed `to_id`.

        Unknown identifiers are reported in the result, not raised.
        """
        source = self.catalog.get(from_id)
        target = self.catalog.get(to_id)
        if source is None or target is None:
            logger.debug(f"Connection check with unknown module: {from_id} -> {to_id}")
            return MODULE_NOT_FOUND

        shared = _shared_formats(source, target)
        if shared:
            format_str = ", ".join(shared)
            generic = (
                f"{source.display_name} outputs {format_str} format, which "
                f"{target.display_name} accepts as input. Data flows naturally "
                f"between these modules."
            )
            return CompatibilityResult(
                valid=True,
                message=f"{COMPATIBLE_PREFIX}{format_str}",
                learning_note=self._note(self.compatible_notes, source, target, generic),
                formats=shared,
            )

        outputs = "/".join(source.output_formats)
        inputs = "/".join(target.input_formats)
        generic = (
            f"{source.display_name} outputs {outputs} format, but {target.display_name} "
            f"expects {inputs} input. These formats are incompatible; you need an "
            f"intermediate conversion step."
        )
        return CompatibilityResult(
            valid=False,
            message=(
                f"Incompatible: {source.display_name} outputs {outputs} "
                f"but {target.display_name} needs {inputs}"
            ),
            learning_note=self._note(self.incompatible_notes, source, target, generic),
        )

    def compatible_modules(self, module_id: str, direction: str) -> List[ModuleDescriptor]:
        """
        Modules that can sit next to `module_id`.

        upstream: modules whose outputs the target can accept.
        downstream: modules that can accept the target's outputs.
        """
        if direction not in (UPSTREAM, DOWNSTREAM):
            raise ValueError(f"Unknown direction: {direction!r} (expected 'upstream' or 'downstream')")

        target = self.catalog.get(module_id)
        if target is None:
            return []

        if direction == UPSTREAM:
            return [
                m for m in self.catalog
                if m.id != module_id and _shared_formats(m, target)
            ]
        return [
            m for m in self.catalog
            if m.id != module_id and _shared_formats(target, m)
        ]

    @staticmethod
    def _note(
        table: Dict[Tuple[str, str], str],
        source: ModuleDescriptor,
        target: ModuleDescriptor,
        generic: str,
    ) -> str:
        template = table.get((source.id, target.id))
        if template is None:
            return generic
        return template.format(src=source.display_name, dst=target.display_name)


_default_resolver: Optional[CompatibilityResolver] = None


def _resolver() -> CompatibilityResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = CompatibilityResolver()
    return _default_resolver


def validate_module_connection(from_id: str, to_id: str) -> CompatibilityResult:
    """Resolve a connection against the default catalog."""
    return _resolver().resolve(from_id, to_id)


def get_compatible_modules(module_id: str, direction: str) -> List[ModuleDescriptor]:
    return _resolver().compatible_modules(module_id, direction)
