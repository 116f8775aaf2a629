"""
Module Catalog

Read-only table of the computational modules a learner can place in a
workflow, plus an indexed repository for lookups by identifier.

Each descriptor carries its accepted input formats, produced output formats,
compute requirements and the learning metadata shown on the module page.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class ModuleCategory(str, Enum):
    """Closed set of module categories."""
    ANTIBODY = "antibody"
    PROTEIN = "protein"
    INTERACTION = "interaction"
    ASSESSMENT = "assessment"


@dataclass(frozen=True)
class ComputeRequirements:
    gpu: bool
    memory: str
    time_estimate: str


@dataclass(frozen=True)
class LearningMetadata:
    concept_summary: str
    why_it_matters: str
    key_insight: str
    prerequisites: Tuple[str, ...] = ()
    common_mistakes: Tuple[str, ...] = ()
    deep_dive_topics: Tuple[str, ...] = ()
    difficulty: str = "beginner"  # beginner | intermediate | advanced


@dataclass(frozen=True)
class ModuleDescriptor:
    """A named computational step with declared input/output formats."""
    id: str
    display_name: str
    description: str
    category: ModuleCategory
    input_formats: Tuple[str, ...]
    output_formats: Tuple[str, ...]
    compute: ComputeRequirements
    learning: LearningMetadata
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def requires_gpu(self) -> bool:
        return self.compute.gpu

    def to_summary(self) -> Dict[str, object]:
        """Lightweight dict for listings and API responses."""
        return {
            "id": self.id,
            "name": self.display_name,
            "description": self.description,
            "category": self.category.value,
            "inputFormats": list(self.input_formats),
            "outputFormats": list(self.output_formats),
            "gpu": self.compute.gpu,
            "timeEstimate": self.compute.time_estimate,
            "difficulty": self.learning.difficulty,
        }


# =============================================================================
# Catalog Data
# =============================================================================

MODULE_CATALOG: Tuple[ModuleDescriptor, ...] = (
    ModuleDescriptor(
        id="rfdiffusion",
        display_name="RFdiffusion",
        description=(
            "De novo protein structure generation using denoising diffusion "
            "probabilistic models. Generates novel protein backbones from noise "
            "or conditional inputs."
        ),
        category=ModuleCategory.PROTEIN,
        input_formats=("PDB",),
        output_formats=("PDB",),
        compute=ComputeRequirements(gpu=True, memory="16 GB", time_estimate="30-120 min"),
        learning=LearningMetadata(
            concept_summary=(
                "RFdiffusion applies denoising diffusion models to protein structure. "
                "It starts from random 3D coordinates and iteratively refines them "
                "into physically valid protein backbones."
            ),
            why_it_matters=(
                "Designing new protein structures used to need extensive expertise or "
                "slow physics-based simulation. RFdiffusion generates novel "
                "architectures in minutes."
            ),
            key_insight=(
                "Diffusion models learn to reverse a noise process: trained by adding "
                "noise to known structures, they generate by denoising from pure noise."
            ),
            prerequisites=(
                "Protein backbone geometry (phi/psi angles, peptide bonds)",
                "Basic understanding of neural networks",
                "PDB file format",
            ),
            common_mistakes=(
                "Generating structures without constraints, which gives valid but random folds",
                "Using too few diffusion steps, which produces more clashes",
                "Forgetting that RFdiffusion only generates backbones; ProteinMPNN designs the sequence",
            ),
            deep_dive_topics=(
                "Denoising diffusion probabilistic models and score matching",
                "SE(3) equivariance in protein structure generation",
                "Conditional generation with hotspot residues and contigs",
            ),
            difficulty="intermediate",
        ),
        tags=("diffusion", "generative", "backbone", "de novo"),
    ),
    ModuleDescriptor(
        id="proteinmpnn",
        display_name="ProteinMPNN",
        description=(
            "Sequence design from protein backbone structures using message passing "
            "neural networks. Solves the inverse folding problem."
        ),
        category=ModuleCategory.PROTEIN,
        input_formats=("PDB",),
        output_formats=("FASTA",),
        compute=ComputeRequirements(gpu=False, memory="8 GB", time_estimate="1-10 min"),
        learning=LearningMetadata(
            concept_summary=(
                "ProteinMPNN finds amino acid sequences that fold into a given backbone "
                "by passing messages over the graph of neighbouring residues."
            ),
            why_it_matters=(
                "Design needs structure-to-sequence, the reverse of structure "
                "prediction. ProteinMPNN gives sequences for backbones with no natural "
                "counterpart."
            ),
            key_insight=(
                "Many sequences fold into similar structures; ProteinMPNN navigates this "
                "degeneracy using sequence-structure statistics learned from the PDB."
            ),
            prerequisites=(
                "Amino acid properties and the genetic code",
                "Protein folding basics",
                "Understanding of PDB coordinate files",
            ),
            common_mistakes=(
                "Designing sequences for backbones with steric clashes",
                "Using the default temperature for every design",
                "Not sampling multiple sequences before filtering",
            ),
            deep_dive_topics=(
                "Message passing neural networks on protein graphs",
                "The inverse folding problem",
                "Tied vs untied design for multi-chain complexes",
            ),
            difficulty="beginner",
        ),
        tags=("sequence design", "inverse folding", "MPNN"),
    ),
    ModuleDescriptor(
        id="alphafold2",
        display_name="AlphaFold2",
        description=(
            "Protein structure prediction from amino acid sequences using multiple "
            "sequence alignments and an attention-based architecture."
        ),
        category=ModuleCategory.PROTEIN,
        input_formats=("FASTA",),
        output_formats=("PDB",),
        compute=ComputeRequirements(gpu=True, memory="16 GB", time_estimate="15-60 min"),
        learning=LearningMetadata(
            concept_summary=(
                "AlphaFold2 combines evolutionary information from MSAs with the "
                "Evoformer network to predict atomic coordinates and per-residue "
                "confidence (pLDDT)."
            ),
            why_it_matters=(
                "Predicting structure from sequence was a 50-year grand challenge. "
                "AlphaFold2 gives structural insight for proteins never crystallized."
            ),
            key_insight=(
                "Co-evolving residues in the MSA are usually in contact; that "
                "evolutionary signal is what makes accurate folding possible."
            ),
            prerequisites=(
                "Protein primary structure and the central dogma",
                "What a multiple sequence alignment is",
                "Basic concept of neural network attention",
            ),
            common_mistakes=(
                "Trusting low-confidence regions (pLDDT < 50)",
                "Using AlphaFold for protein-ligand binding predictions",
                "Ignoring MSA quality",
                "Assuming the prediction captures dynamics",
            ),
            deep_dive_topics=(
                "The Evoformer architecture and triangular attention",
                "pLDDT and PAE confidence metrics",
                "AlphaFold-Multimer for complexes",
            ),
            difficulty="beginner",
        ),
        tags=("structure prediction", "MSA", "pLDDT"),
    ),
    ModuleDescriptor(
        id="esmfold",
        display_name="ESMFold",
        description=(
            "Fast structure prediction from a single sequence using a protein "
            "language model, without multiple sequence alignments."
        ),
        category=ModuleCategory.PROTEIN,
        input_formats=("FASTA",),
        output_formats=("PDB",),
        compute=ComputeRequirements(gpu=True, memory="12 GB", time_estimate="1-5 min"),
        learning=LearningMetadata(
            concept_summary=(
                "ESMFold uses the ESM-2 language model, trained on millions of "
                "sequences, to predict structure without an MSA."
            ),
            why_it_matters=(
                "Skipping MSA construction makes prediction fast enough for "
                "high-throughput screening."
            ),
            key_insight=(
                "Masked-token training makes language models learn which residues "
                "interact, rediscovering contact maps without seeing structures."
            ),
            prerequisites=(
                "Basic protein structure concepts",
                "What a language model is",
                "How AlphaFold2 works (for comparison)",
            ),
            common_mistakes=(
                "Using ESMFold where MSA-based methods would be more accurate",
                "Not checking pTM scores",
                "Assuming ESMFold uses the same signal as AlphaFold2",
            ),
            deep_dive_topics=(
                "Masked language modeling on protein sequences",
                "Attention maps that encode contacts",
                "Speed vs accuracy tradeoffs",
            ),
            difficulty="intermediate",
        ),
        tags=("structure prediction", "language model", "fast"),
    ),
    ModuleDescriptor(
        id="evoprotgrad",
        display_name="EvoProtGrad",
        description=(
            "Directed evolution in silico using protein language model gradients to "
            "navigate fitness landscapes."
        ),
        category=ModuleCategory.PROTEIN,
        input_formats=("FASTA",),
        output_formats=("FASTA",),
        compute=ComputeRequirements(gpu=False, memory="8 GB", time_estimate="10-60 min"),
        learning=LearningMetadata(
            concept_summary=(
                "Starting from a parent sequence, EvoProtGrad proposes mutations "
                "likely to improve fitness using language model gradients."
            ),
            why_it_matters=(
                "Lab directed evolution takes weeks per round; computational "
                "pre-screening narrows candidates before wet lab work."
            ),
            key_insight=(
                "Gradients act as a fitness proxy, moving uphill on the landscape "
                "instead of mutating at random."
            ),
            prerequisites=(
                "Protein sequence basics and mutations",
                "The concept of a fitness landscape",
                "What directed evolution is",
            ),
            common_mistakes=(
                "Optimizing without a clear fitness objective",
                "Making too many mutations per round",
                "Trusting predictions without experimental validation",
            ),
            deep_dive_topics=(
                "Fitness landscapes",
                "Gradient-based vs sampling-based optimization",
                "Epistasis",
            ),
            difficulty="advanced",
        ),
        tags=("directed evolution", "optimization"),
    ),
    ModuleDescriptor(
        id="rfantibody",
        display_name="RFAntibody",
        description=(
            "Antibody design pipeline generating variable regions (VH/VL) optimized "
            "for target binding."
        ),
        category=ModuleCategory.ANTIBODY,
        input_formats=("PDB",),
        output_formats=("PDB", "FASTA"),
        compute=ComputeRequirements(gpu=True, memory="16 GB", time_estimate="30-90 min"),
        learning=LearningMetadata(
            concept_summary=(
                "RFAntibody designs the six CDR loops to bind a target surface while "
                "keeping the conserved antibody framework."
            ),
            why_it_matters=(
                "Animal immunization and phage display take months; computational "
                "design produces diverse candidates in hours."
            ),
            key_insight=(
                "Antibody design is constrained creativity: variable CDRs on a "
                "conserved framework."
            ),
            prerequisites=(
                "Antibody structure basics",
                "What CDRs are",
                "Protein-protein binding interfaces",
            ),
            common_mistakes=(
                "Designing without a high-quality target structure",
                "Ignoring developability",
                "Not considering CDR length variation",
            ),
            deep_dive_topics=(
                "CDR numbering schemes",
                "V(D)J recombination",
                "Humanization and immunogenicity",
            ),
            difficulty="advanced",
        ),
        tags=("antibody", "CDR design", "therapeutic"),
    ),
    ModuleDescriptor(
        id="temstapro",
        display_name="TemStaPro",
        description=(
            "Thermostability prediction for protein sequences using language model "
            "embeddings."
        ),
        category=ModuleCategory.ASSESSMENT,
        input_formats=("FASTA",),
        output_formats=("CSV",),
        compute=ComputeRequirements(gpu=False, memory="4 GB", time_estimate="1-5 min"),
        learning=LearningMetadata(
            concept_summary=(
                "TemStaPro classifies sequences as thermophilic or mesophilic and "
                "estimates melting temperature."
            ),
            why_it_matters=(
                "Designed proteins often have marginal stability; checking early "
                "saves expensive wet lab failures."
            ),
            key_insight=(
                "Thermostability is a proxy for overall protein quality, including "
                "resistance to aggregation."
            ),
            prerequisites=(
                "Free energy of folding",
                "What melting temperature means",
                "Protein stability factors",
            ),
            common_mistakes=(
                "Treating predictions as absolute Tm values",
                "Optimizing stability at the expense of function",
                "Ignoring kinetic stability",
            ),
            deep_dive_topics=(
                "Thermodynamic vs kinetic stability",
                "Consensus design for stability",
                "High-throughput stability assays",
            ),
            difficulty="beginner",
        ),
        tags=("thermostability", "assessment"),
    ),
    ModuleDescriptor(
        id="geodock",
        display_name="GeoDock",
        description=(
            "Protein-protein docking with SE(3)-equivariant geometric deep learning."
        ),
        category=ModuleCategory.INTERACTION,
        input_formats=("PDB",),
        output_formats=("PDB", "CSV"),
        compute=ComputeRequirements(gpu=False, memory="8 GB", time_estimate="10-60 min"),
        learning=LearningMetadata(
            concept_summary=(
                "GeoDock finds the relative orientation and position at which two "
                "proteins bind."
            ),
            why_it_matters=(
                "Most biological functions depend on protein-protein interactions, "
                "including antibody-antigen recognition."
            ),
            key_insight=(
                "Docking is a 6D search; the hard part is telling the true pose from "
                "plausible decoys."
            ),
            prerequisites=(
                "Protein surface properties and electrostatics",
                "Binding affinity and Kd",
                "Rigid body transformations",
            ),
            common_mistakes=(
                "Docking inaccurate predicted structures",
                "Assuming the top-scored pose is correct",
                "Ignoring flexibility",
            ),
            deep_dive_topics=(
                "SE(3) equivariance",
                "Rigid-body vs flexible docking",
                "Scoring functions",
            ),
            difficulty="advanced",
        ),
        tags=("docking", "protein-protein interaction"),
    ),
)

# Used by the composer when no goal keyword matches
DEFAULT_MODULE_ID = "alphafold2"


# =============================================================================
# Repository
# =============================================================================

class ModuleCatalog:
    """
    Read-only repository over module descriptors with an id index.

    Iteration follows catalog order, which is the tie-break order used by
    compatibility queries.
    """

    def __init__(self, modules: Tuple[ModuleDescriptor, ...] = MODULE_CATALOG):
        self._modules = tuple(modules)
        self._index: Dict[str, ModuleDescriptor] = {}
        for module in self._modules:
            if module.id in self._index:
                raise ValueError(f"Duplicate module id in catalog: {module.id}")
            self._index[module.id] = module

    def get(self, module_id: str) -> Optional[ModuleDescriptor]:
        return self._index.get(module_id)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._index

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    @property
    def ids(self) -> List[str]:
        return [m.id for m in self._modules]


_default_catalog: Optional[ModuleCatalog] = None


def get_default_catalog() -> ModuleCatalog:
    """Shared catalog built from MODULE_CATALOG."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = ModuleCatalog()
    return _default_catalog


def get_module_by_id(module_id: str) -> Optional[ModuleDescriptor]:
    return get_default_catalog().get(module_id)
