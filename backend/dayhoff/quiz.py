"""
Quiz bank and grading.

Grading is separate from progression: the only thing the progression engine
reads from a graded quiz is the percentage score and when it was taken.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ValidationError
from .progress_store import SkillLevel

TIER_ORDER = ("beginner", "intermediate", "advanced")


@dataclass(frozen=True)
class QuizQuestion:
    id: str
    question: str
    options: Tuple[str, ...]
    correct_index: int
    explanation: str
    difficulty: str = "beginner"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "difficulty": self.difficulty,
            "correctIndex": self.correct_index,
            "explanation": self.explanation,
        }


@dataclass
class AnswerResult:
    question_id: str
    selected_index: int
    correct: bool
    correct_index: Optional[int] = None
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "selectedIndex": self.selected_index,
            "correct": self.correct,
            "correctIndex": self.correct_index,
            "explanation": self.explanation,
        }


@dataclass
class QuizGrade:
    score: int
    correct_count: int
    total: int
    results: List[AnswerResult] = field(default_factory=list)
    graded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Quiz Bank
# =============================================================================
# Five questions per module: two beginner, two intermediate, one advanced.

MODULE_QUIZZES: Dict[str, Tuple[QuizQuestion, ...]] = {
    "rfdiffusion": (
        QuizQuestion(
            id="rfdiffusion-q1",
            question="What does RFdiffusion generate as its primary output?",
            options=(
                "A full protein sequence with side chains",
                "A protein backbone structure (no sequence)",
                "A folded protein with predicted binding affinity",
                "An amino acid sequence optimized for stability",
            ),
            correct_index=1,
            explanation=(
                "RFdiffusion generates backbone structures but does not assign "
                "sequences. A tool like ProteinMPNN designs the sequence."
            ),
        ),
        QuizQuestion(
            id="rfdiffusion-q2",
            question="Which process does a diffusion model reverse to generate new structures?",
            options=(
                "Protein folding from a denatured state",
                "The gradual addition of noise to training data",
                "Molecular dynamics simulation of thermal motion",
                "Evolutionary divergence of homologous proteins",
            ),
            correct_index=1,
            explanation=(
                "Training corrupts structures with noise step by step; generation "
                "starts from noise and learns to remove it."
            ),
        ),
        QuizQuestion(
            id="rfdiffusion-q3",
            question="Why is SE(3) equivariance important for RFdiffusion's network?",
            options=(
                "It allows sequences of any length without retraining",
                "It ensures generated structures are thermostable",
                "Rotating or translating the input transforms the output equivalently",
                "It prevents clashes with known PDB entries",
            ),
            correct_index=2,
            explanation=(
                "Protein physics does not depend on orientation, so the model must "
                "treat rotated inputs consistently."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="rfdiffusion-q4",
            question="What role do hotspot residues play in conditional generation?",
            options=(
                "They mark residues to mutate for stability",
                "They are target residues the designed protein should contact",
                "They mark backbone regions that should stay disordered",
                "They indicate where disulfide bonds must form",
            ),
            correct_index=1,
            explanation=(
                "Conditioning on hotspots shapes the generated backbone to make "
                "contacts at chosen positions on the target, which is how binders "
                "are aimed."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="rfdiffusion-q5",
            question=(
                "A binder campaign generates 100 backbones, designs sequences with "
                "ProteinMPNN and ranks them by AlphaFold2 confidence. What is the "
                "most critical limitation of this pipeline?"
            ),
            options=(
                "AlphaFold2 cannot predict structures longer than 100 residues",
                "RFdiffusion backbones are always left-handed helices",
                "No computational metric guarantees folding, binding or function, so lab validation is essential",
                "ProteinMPNN only designs sequences for natural folds",
            ),
            correct_index=2,
            explanation=(
                "Every stage is a prediction. High confidence does not guarantee "
                "expression, folding or binding; only experiments settle that."
            ),
            difficulty="advanced",
        ),
    ),
    "proteinmpnn": (
        QuizQuestion(
            id="proteinmpnn-q1",
            question="What problem does ProteinMPNN solve?",
            options=(
                "Predicting 3D structure from sequence",
                "Designing a sequence that folds into a given backbone",
                "Simulating unfolding at high temperature",
                "Identifying evolutionary relationships",
            ),
            correct_index=1,
            explanation="ProteinMPNN solves inverse folding: structure to sequence.",
        ),
        QuizQuestion(
            id="proteinmpnn-q2",
            question="Why generate multiple sequence candidates instead of one?",
            options=(
                "Most outputs are corrupted",
                "Many sequences fold into similar structures; sampling raises the odds one works",
                "Each run produces only a partial sequence",
                "A single sequence always folds into several structures",
            ),
            correct_index=1,
            explanation=(
                "The sequence-structure mapping is many-to-one, so sampling explores "
                "designs that are also expressible and soluble."
            ),
        ),
        QuizQuestion(
            id="proteinmpnn-q3",
            question="What happens when the sampling temperature is increased?",
            options=(
                "The model runs faster",
                "Sequence diversity increases but individual designs are less reliable",
                "Only hydrophobic residues are produced",
                "Output is restricted to PDB sequences",
            ),
            correct_index=1,
            explanation=(
                "Higher temperature flattens the residue distribution, trading "
                "confidence for diversity."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="proteinmpnn-q4",
            question="What does 'message passing' refer to in ProteinMPNN's architecture?",
            options=(
                "Sending intermediate results to a remote server",
                "Graph nodes iteratively exchange information with their neighbours to build context",
                "Reading the sequence left to right like a language model",
                "Passing error signals backward during training only",
            ),
            correct_index=1,
            explanation=(
                "Residues are graph nodes and spatial neighbours are edges; repeated "
                "message exchange gives each residue its structural environment."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="proteinmpnn-q5",
            question=(
                "Sequences designed for a symmetric homotrimer fold well as monomers "
                "(high pLDDT) but the predicted complex misses the intended interface. "
                "What is the most likely explanation?"
            ),
            options=(
                "AlphaFold2 cannot predict multi-chain structures",
                "ProteinMPNN ignores multimeric inputs",
                "Inter-chain contacts were not sufficiently constrained, so the sequence favours another packing",
                "Fixing interface residues always breaks designs",
            ),
            correct_index=2,
            explanation=(
                "Oligomer design must encode the interface explicitly. Check the "
                "predicted complex, not just each chain."
            ),
            difficulty="advanced",
        ),
    ),
    "alphafold2": (
        QuizQuestion(
            id="alphafold2-q1",
            question="What is the primary input AlphaFold2 needs to predict a structure?",
            options=(
                "A cryo-EM density map",
                "An amino acid sequence and its multiple sequence alignment",
                "A measured melting temperature",
                "A homologous crystal structure as a mandatory template",
            ),
            correct_index=1,
            explanation=(
                "AlphaFold2 takes a sequence and builds an MSA; co-evolutionary "
                "signal in the MSA drives much of its accuracy."
            ),
        ),
        QuizQuestion(
            id="alphafold2-q2",
            question="What does the pLDDT score represent?",
            options=(
                "The probability of expression in E. coli",
                "Predicted binding affinity to a drug",
                "A per-residue estimate of local structural confidence",
                "The fraction of the sequence aligned to PDB entries",
            ),
            correct_index=2,
            explanation=(
                "pLDDT runs from 0 to 100 per residue. Low values often mark "
                "disordered or unreliable regions; it says nothing about function."
            ),
        ),
        QuizQuestion(
            id="alphafold2-q3",
            question="Why does AlphaFold2 rely on MSAs rather than the single sequence alone?",
            options=(
                "MSAs determine molecular weight",
                "Co-evolving residue pairs reveal spatial contacts and constrain distances",
                "MSAs replace the neural network",
                "Single sequences have too few atoms for physics",
            ),
            correct_index=1,
            explanation=(
                "Residues in contact mutate together over evolution. The Evoformer "
                "reads these correlations as distance constraints."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="alphafold2-q4",
            question="Which is a well-known limitation of AlphaFold2?",
            options=(
                "It cannot predict alpha-helices",
                "It predicts one static structure and misses conformational dynamics",
                "It only works below 50 residues",
                "It requires NMR data as input",
            ),
            correct_index=1,
            explanation=(
                "Many proteins switch between states. A single static prediction "
                "does not capture ensembles or ligand-induced changes."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="alphafold2-q5",
            question=(
                "A novel bacterial protein is predicted with pLDDT above 90 everywhere, "
                "and the structure goes straight into drug docking. What is the flaw?"
            ),
            options=(
                "pLDDT above 90 means the prediction is wrong",
                "High pLDDT is model confidence, not ground truth; binding-site geometry may still be off",
                "There is no flaw above pLDDT 90",
                "Docking only works with NMR structures",
            ),
            correct_index=1,
            explanation=(
                "Models can be confidently wrong, especially outside their training "
                "data, and docking is sensitive to side-chain detail. Validate first."
            ),
            difficulty="advanced",
        ),
    ),
    "esmfold": (
        QuizQuestion(
            id="esmfold-q1",
            question="What is ESMFold's key input advantage over AlphaFold2?",
            options=(
                "It requires a crystal structure",
                "It needs only a single sequence, no MSA",
                "It runs only on GPU clusters",
                "It works exclusively on membrane proteins",
            ),
            correct_index=1,
            explanation=(
                "Skipping the MSA search makes ESMFold much faster; its language "
                "model already absorbed evolutionary patterns in pretraining."
            ),
        ),
        QuizQuestion(
            id="esmfold-q2",
            question="How does ESMFold capture evolutionary information without an explicit MSA?",
            options=(
                "It downloads MSAs at runtime",
                "Its protein language model learned co-occurrence and conservation from millions of sequences",
                "It uses a physics force field instead",
                "It cannot, which is why it is always less accurate",
            ),
            correct_index=1,
            explanation=(
                "ESM-2 was pretrained with masked language modelling, which "
                "implicitly encodes much of what an MSA provides."
            ),
        ),
        QuizQuestion(
            id="esmfold-q3",
            question="What does a low pTM score suggest about a prediction?",
            options=(
                "The protein is certainly disordered",
                "The global fold is unreliable and should be treated with caution",
                "The sequence was too short to process",
                "The prediction will match the crystal structure exactly",
            ),
            correct_index=1,
            explanation=(
                "pTM estimates global fold accuracy from 0 to 1. Below about 0.5 the "
                "overall topology is uncertain."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="esmfold-q4",
            question="When would you choose ESMFold over AlphaFold2?",
            options=(
                "When you need maximum accuracy on a family with deep MSAs",
                "When screening thousands of sequences quickly and a small accuracy loss is acceptable",
                "When predicting protein-DNA interactions",
                "When refining an existing crystal structure",
            ),
            correct_index=1,
            explanation=(
                "ESMFold suits high-throughput filtering; run AlphaFold2 on the "
                "shortlisted candidates."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="esmfold-q5",
            question=(
                "A protein family with no known homologs gets low confidence from both "
                "AlphaFold2 (shallow MSA) and ESMFold (low pTM). What is the best reading?"
            ),
            options=(
                "Both tools are broken",
                "The protein must be intrinsically disordered",
                "Both lack evolutionary context here; low confidence signals uncertainty, not absence of structure",
                "Trust ESMFold because language models always generalize better",
            ),
            correct_index=2,
            explanation=(
                "The family is outside both models' training distribution. It may "
                "still fold; experimental structure determination may be needed."
            ),
            difficulty="advanced",
        ),
    ),
    "evoprotgrad": (
        QuizQuestion(
            id="evoprotgrad-q1",
            question="What is directed evolution in protein engineering?",
            options=(
                "Predicting structures from genomic data",
                "Iterative rounds of mutation and selection for improved variants",
                "Aligning DNA across species",
                "Extracting proteins from thermophiles",
            ),
            correct_index=1,
            explanation=(
                "Directed evolution creates diversity and selects for a property of "
                "interest, mimicking natural evolution on a chosen goal."
            ),
        ),
        QuizQuestion(
            id="evoprotgrad-q2",
            question="What is a major advantage of computational directed evolution over lab rounds?",
            options=(
                "Every design is guaranteed to work",
                "It explores the mutational landscape faster and cheaper, cutting experimental rounds",
                "It needs no starting sequence",
                "It has fully replaced lab evolution",
            ),
            correct_index=1,
            explanation=(
                "In silico search prioritizes promising mutations before cloning "
                "and screening; top candidates still need testing."
            ),
        ),
        QuizQuestion(
            id="evoprotgrad-q3",
            question="How does gradient-guided search differ from random mutagenesis?",
            options=(
                "It only works below 100 residues",
                "Fitness-model gradients propose mutations predicted to improve the property",
                "It introduces more mutations per round",
                "It only changes surface residues",
            ),
            correct_index=1,
            explanation=(
                "Gradients point toward sequence changes that raise predicted "
                "fitness, much like gradient descent on a loss surface."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="evoprotgrad-q4",
            question="On a protein fitness landscape, what do peaks and valleys represent?",
            options=(
                "High-expression and aggregation-prone sequences",
                "High-fitness and low-fitness variants across sequence space",
                "Alpha-helices and beta-sheets",
                "Conserved and variable residues",
            ),
            correct_index=1,
            explanation=(
                "The landscape maps sequence to a fitness measure; engineering is "
                "the search for peaks."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="evoprotgrad-q5",
            question=(
                "A gradient-guided search predicts a 50-fold activity gain and the "
                "variant goes straight to large-scale production. What is wrong?"
            ),
            options=(
                "EvoProtGrad only optimizes thermostability",
                "A 50-fold gain is too small to matter",
                "Fitness predictions are approximations that can fail far from training data; validate experimentally first",
                "Gradient methods never work for enzymes",
            ),
            correct_index=2,
            explanation=(
                "Large predicted gains often come from extrapolation. Aggregation, "
                "misfolding or lost specificity are not captured by the model."
            ),
            difficulty="advanced",
        ),
    ),
    "rfantibody": (
        QuizQuestion(
            id="rfantibody-q1",
            question="What are CDRs in an antibody?",
            options=(
                "Constant regions that set the antibody class",
                "Hypervariable loops that contact the antigen and set specificity",
                "Disulfide bonds joining heavy and light chains",
                "Signal peptides for secretion",
            ),
            correct_index=1,
            explanation=(
                "Six CDR loops, three per chain, contact the antigen; the framework "
                "around them is comparatively conserved."
            ),
        ),
        QuizQuestion(
            id="rfantibody-q2",
            question="Why is CDR-H3 the most important loop for antibody design?",
            options=(
                "It is encoded by a single gene segment",
                "It has the most length and sequence diversity and usually makes the key antigen contacts",
                "It is the only heavy-chain CDR",
                "It is always 12 residues long",
            ),
            correct_index=1,
            explanation=(
                "V(D)J joining makes CDR-H3 highly diverse, and it sits at the "
                "centre of the binding site."
            ),
        ),
        QuizQuestion(
            id="rfantibody-q3",
            question="Why keep framework regions largely conserved when redesigning CDRs?",
            options=(
                "Frameworks are patented",
                "They scaffold and position the CDR loops; disrupting them can misfold the domain",
                "They are invisible to the immune system",
                "They are identical across all antibodies",
            ),
            correct_index=1,
            explanation=(
                "Framework mutations can shift loop orientation or destabilize the "
                "immunoglobulin fold and abolish binding."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="rfantibody-q4",
            question="What does 'developability' mean for a designed antibody?",
            options=(
                "How fast the gene can be cloned",
                "Solubility, stability, low aggregation and manufacturability beyond binding affinity",
                "How fast it evolves new specificities",
                "A computational metric with no real-world relevance",
            ),
            correct_index=1,
            explanation=(
                "A tight binder that aggregates or cannot be manufactured fails as "
                "a therapeutic."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="rfantibody-q5",
            question=(
                "A top design has strong predicted binding but an unpaired cysteine in "
                "CDR-H3, an NG motif in CDR-L1 and a 28-residue CDR-H3. What concerns apply?"
            ),
            options=(
                "None; binding metrics are all that matter",
                "Only the long CDR-H3",
                "All three are developability red flags: aberrant disulfides, deamidation and loop instability",
                "They matter only for mammalian expression",
            ),
            correct_index=2,
            explanation=(
                "Unpaired cysteines drive aggregation, NG motifs deamidate and very "
                "long loops are flexible and hard to produce consistently."
            ),
            difficulty="advanced",
        ),
    ),
    "temstapro": (
        QuizQuestion(
            id="temstapro-q1",
            question="What does the melting temperature (Tm) of a protein indicate?",
            options=(
                "The temperature at which ribosomes synthesize it",
                "The temperature at which half the population is unfolded",
                "The temperature of maximum catalytic activity",
                "The temperature at which bound water crystallizes",
            ),
            correct_index=1,
            explanation="Tm is where 50% of the protein has unfolded; higher means more stable.",
        ),
        QuizQuestion(
            id="temstapro-q2",
            question="How do thermophilic and mesophilic proteins differ?",
            options=(
                "Thermophiles only make membrane proteins",
                "Thermophile proteins are adapted to stay stable at high temperature; mesophile proteins less so",
                "There is no difference",
                "Mesophile proteins have higher Tm",
            ),
            correct_index=1,
            explanation=(
                "Comparing thermophilic and mesophilic variants of the same protein "
                "reveals the molecular basis of thermostability."
            ),
        ),
        QuizQuestion(
            id="temstapro-q3",
            question="Why is thermostability a useful proxy for overall protein quality?",
            options=(
                "Thermostable proteins are always more active",
                "It correlates with expression, shelf life and mutational tolerance",
                "Language models can only measure temperature",
                "Regulators require all therapeutics to be thermostable",
            ),
            correct_index=1,
            explanation=(
                "Stable proteins tend to express better and tolerate mutations, "
                "making stability a practical robustness indicator."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="temstapro-q4",
            question="Predictions carry roughly +/-5 C uncertainty. Why does that matter?",
            options=(
                "It does not; 5 C is negligible",
                "Small predicted differences between variants should not be over-interpreted",
                "The tool only works above 50 C",
                "The tool is only for thermophilic proteins",
            ),
            correct_index=1,
            explanation=(
                "Variants at 63 C and 66 C are within noise. The tool separates large "
                "differences better than close calls."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="temstapro-q5",
            question=(
                "A variant gains a predicted 20 C in Tm and expresses well, but loses 95% "
                "of its catalytic activity. What principle does this show?"
            ),
            options=(
                "Predictions are always wrong for industrial enzymes",
                "A 20 C gain is impossible",
                "Stability and function can conflict; rigidifying a protein can remove flexibility needed for catalysis",
                "The enzyme was already too stable",
            ),
            correct_index=2,
            explanation=(
                "Catalysis often needs loop and domain motion. Optimize stability "
                "together with function, not in isolation."
            ),
            difficulty="advanced",
        ),
    ),
    "geodock": (
        QuizQuestion(
            id="geodock-q1",
            question="What does protein-protein docking aim to predict?",
            options=(
                "The sequence of a binder for a target",
                "The 3D arrangement of proteins in a complex, including relative position and orientation",
                "The association rate in solution",
                "The evolutionary relationship between families",
            ),
            correct_index=1,
            explanation=(
                "Docking predicts how two structures come together and which "
                "surfaces make contact."
            ),
        ),
        QuizQuestion(
            id="geodock-q2",
            question="Why is docking hard even when both structures are known?",
            options=(
                "Protein structures are too small to analyze",
                "Six degrees of freedom (three translational, three rotational) create a huge search space",
                "Proteins change sequence when they interact",
                "Docking only works within one organism",
            ),
            correct_index=1,
            explanation=(
                "Every pose in the six-dimensional space must be scored, and "
                "flexibility multiplies the cost."
            ),
        ),
        QuizQuestion(
            id="geodock-q3",
            question="How does rigid-body docking differ from flexible docking?",
            options=(
                "Rigid-body docking only accepts crystal structures",
                "Rigid-body keeps structures fixed; flexible docking also allows conformational change",
                "Rigid-body docking is always more accurate",
                "Flexible docking models unfolded chains",
            ),
            correct_index=1,
            explanation=(
                "Flexible docking captures induced fit at a higher computational cost."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="geodock-q4",
            question="Why is SE(3) equivariance valuable for a docking model?",
            options=(
                "It removes the need for sequences",
                "Predictions stay consistent however the inputs are positioned or oriented",
                "It restricts predictions to symmetric homodimers",
                "It enables quantum hardware",
            ),
            correct_index=1,
            explanation=(
                "Binding does not depend on the coordinate frame, so rotating the "
                "inputs should rotate the predicted complex identically."
            ),
            difficulty="intermediate",
        ),
        QuizQuestion(
            id="geodock-q5",
            question=(
                "The top-scoring pose of a designed antibody contacts the antigen with its "
                "framework; the second pose uses the CDR loops. The top pose is chosen. "
                "What is the mistake?"
            ),
            options=(
                "GeoDock cannot dock antibodies",
                "All poses should have been averaged",
                "Scores are imperfect; antibodies bind through CDRs, so biology must inform pose selection",
                "Antibodies never bind viral proteins",
            ),
            correct_index=2,
            explanation=(
                "A framework-mediated pose is implausible whatever its score. "
                "Inspect several top poses and apply domain knowledge."
            ),
            difficulty="advanced",
        ),
    ),
}


def get_quiz_for_module(module_id: str) -> Optional[List[QuizQuestion]]:
    questions = MODULE_QUIZZES.get(module_id)
    return list(questions) if questions else None


def quiz_tier_for_level(level: SkillLevel) -> str:
    if level == SkillLevel.ADVANCED:
        return "advanced"
    if level == SkillLevel.INTERMEDIATE:
        return "intermediate"
    return "beginner"


def questions_for_tier(questions: Iterable[QuizQuestion], tier: str) -> List[QuizQuestion]:
    """Questions at `tier` and below."""
    if tier not in TIER_ORDER:
        raise ValueError(f"Unknown quiz tier: {tier}")
    max_index = TIER_ORDER.index(tier)
    return [q for q in questions if TIER_ORDER.index(q.difficulty) <= max_index]


def grade_quiz(
    questions: Sequence[QuizQuestion],
    answers: Optional[Sequence[Tuple[str, int]]],
) -> QuizGrade:
    """
    Grade (question_id, selected_index) pairs against the stored answers.

    Unknown question ids count as wrong. Score is round(correct / total * 100),
    or 0 when nothing was answered.
    """
    if answers is None:
        raise ValidationError("Answers are required")

    by_id = {q.id: q for q in questions}
    results = []
    for question_id, selected_index in answers:
        question = by_id.get(question_id)
        if question is None:
            results.append(AnswerResult(question_id=question_id, selected_index=selected_index, correct=False))
            continue
        results.append(AnswerResult(
            question_id=question_id,
            selected_index=selected_index,
            correct=selected_index == question.correct_index,
            correct_index=question.correct_index,
            explanation=question.explanation,
        ))

    correct_count = sum(1 for r in results if r.correct)
    total = len(results)
    # Half rounds up (12.5 -> 13)
    score = math.floor(correct_count / total * 100 + 0.5) if total else 0
    return QuizGrade(score=score, correct_count=correct_count, total=total, results=results)
