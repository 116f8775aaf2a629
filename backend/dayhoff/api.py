"""
Dayhoff Workbench API

FastAPI surface over the composition and progression core.

Run:
    uvicorn dayhoff.api:build_default_app --factory --host 0.0.0.0 --port 8000

Identity comes from the X-User-Id header; authentication happens upstream.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .compatibility import CompatibilityResolver
from .config import Settings, configure_logging
from .errors import ReasoningServiceError, ValidationError
from .module_catalog import ModuleCatalog, ModuleDescriptor, get_default_catalog
from .progress_engine import MasteryProgressionEngine
from .progress_store import ProgressStore, SkillLevel, create_progress_store
from .quiz import get_quiz_for_module, grade_quiz, questions_for_tier, quiz_tier_for_level
from .reasoning_client import ReasoningClient, create_reasoning_client
from .workflow_composer import ComposeConstraints, WorkflowComposer

logger = logging.getLogger(__name__)


# ============== Request/Response Models ==============

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: str
    ai_enabled: bool
    modules: int


class ConstraintsModel(CamelModel):
    max_time: Optional[str] = Field(default=None, alias="maxTime")
    gpu_available: Optional[bool] = Field(default=None, alias="gpuAvailable")


class ComposeRequest(CamelModel):
    """Research goal to turn into a workflow"""
    goal: Optional[str] = None
    constraints: Optional[ConstraintsModel] = None
    learning_mode: bool = Field(default=True, alias="learningMode")
    use_ai: bool = Field(default=True, alias="useAi")


class ConnectionRequest(CamelModel):
    from_id: str = Field(alias="fromId")
    to_id: str = Field(alias="toId")


class AskRequest(BaseModel):
    question: Optional[str] = None


class TrackRequest(CamelModel):
    action: str
    topic: Optional[str] = None
    exercise_id: Optional[str] = Field(default=None, alias="exerciseId")


class ExerciseCompleteRequest(CamelModel):
    exercise_id: Optional[str] = Field(default=None, alias="exerciseId")


class QuizAnswer(CamelModel):
    question_id: str = Field(alias="questionId")
    selected_index: int = Field(alias="selectedIndex")


class QuizSubmission(BaseModel):
    answers: Optional[List[QuizAnswer]] = None


ASK_SYSTEM_TEMPLATE = """You are a patient tutor explaining computational biology tools to a learner. Keep responses focused and educational, and draw on broader knowledge where helpful.

You are answering a question about this module:

{context}"""


def module_context(module: ModuleDescriptor) -> str:
    learning = module.learning
    return "\n".join([
        f"Module: {module.display_name}",
        f"Category: {module.category.value}",
        f"Description: {module.description}",
        f"Concept Summary: {learning.concept_summary}",
        f"Why It Matters: {learning.why_it_matters}",
        f"Key Insight: {learning.key_insight}",
        f"Prerequisites: {', '.join(learning.prerequisites)}",
        f"Common Mistakes: {'; '.join(learning.common_mistakes)}",
        f"Input: {', '.join(module.input_formats)} | Output: {', '.join(module.output_formats)}",
    ])


def fallback_answer(module: ModuleDescriptor) -> str:
    return (
        f"AI answers are not available right now, so here is what the "
        f"{module.display_name} documentation says:\n\n"
        f"**{module.learning.concept_summary}**\n\n"
        f"**Key Insight:** {module.learning.key_insight}"
    )


def _level_up(level: Optional[SkillLevel]) -> Dict[str, Any]:
    return {"skillLevelUp": level.value} if level else {}


def _docs_answer(module: ModuleDescriptor, new_level: Optional[SkillLevel], error: object) -> Dict[str, Any]:
    return {
        "answer": fallback_answer(module),
        "source": "fallback",
        "warning": f"AI request failed: {error}",
        **_level_up(new_level),
    }


# ============== App Factory ==============

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ProgressStore] = None,
    reasoning_client: Optional[ReasoningClient] = None,
    catalog: Optional[ModuleCatalog] = None,
) -> FastAPI:
    """
    Build the API. Collaborators default to what `settings` describes.

    Pass reasoning_client explicitly to override the Claude client built from
    settings (tests inject a mock here).
    """
    settings = settings if settings is not None else Settings.from_env()
    catalog = catalog if catalog is not None else get_default_catalog()
    if reasoning_client is None:
        reasoning_client = create_reasoning_client(settings)
    if store is None:
        store = create_progress_store(settings.progress_store_dir)

    resolver = CompatibilityResolver(catalog)
    composer = WorkflowComposer(catalog=catalog, resolver=resolver, reasoning_client=reasoning_client)
    engine = MasteryProgressionEngine(store)

    app = FastAPI(
        title="Dayhoff Workbench API",
        description="Workflow composition and mastery progression for computational biology modules",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.composer = composer
    app.state.engine = engine
    app.state.resolver = resolver

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
        if not x_user_id or not x_user_id.strip():
            raise HTTPException(status_code=401, detail="Unauthorized")
        return x_user_id.strip()

    def require_module(module_id: str) -> ModuleDescriptor:
        module = catalog.get(module_id)
        if module is None:
            raise HTTPException(status_code=404, detail="Module not found")
        return module

    # ============== Catalog ==============

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(status="healthy", ai_enabled=composer.ai_available, modules=len(catalog))

    @app.get("/modules")
    def list_modules():
        return {"modules": [m.to_summary() for m in catalog]}

    @app.get("/modules/{module_id}/compatible")
    def compatible_modules(module_id: str, direction: str = Query(default="downstream")):
        require_module(module_id)
        try:
            modules = resolver.compatible_modules(module_id, direction)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"moduleId": module_id, "direction": direction, "modules": [m.id for m in modules]}

    # ============== Workflows ==============

    @app.post("/workflows/validate-connection")
    def validate_connection(request: ConnectionRequest):
        result = resolver.resolve(request.from_id, request.to_id)
        return {
            "valid": result.valid,
            "message": result.message,
            "learningNote": result.learning_note,
        }

    @app.post("/workflows/compose")
    def compose_workflow(request: ComposeRequest, user_id: str = Depends(current_user)):
        constraints = None
        if request.constraints is not None:
            constraints = ComposeConstraints(
                max_time=request.constraints.max_time,
                gpu_available=request.constraints.gpu_available,
            )
        draft = composer.compose(
            request.goal or "",
            constraints=constraints,
            use_ai=request.use_ai,
            learning_mode=request.learning_mode,
        )
        return draft.to_dict()

    # ============== Learning ==============

    @app.post("/modules/{module_id}/ask")
    def ask_question(module_id: str, request: AskRequest, user_id: str = Depends(current_user)):
        if not request.question or not request.question.strip():
            raise ValidationError("Question is required")
        module = require_module(module_id)

        engine.track_safely(engine.record_question_asked, user_id, module_id)
        new_level = engine.track_safely(engine.evaluate, user_id, module_id)

        if reasoning_client is None:
            return {"answer": fallback_answer(module), "source": "fallback", **_level_up(new_level)}

        system = ASK_SYSTEM_TEMPLATE.format(context=module_context(module))
        try:
            answer = reasoning_client.generate(request.question, system=system)
        except ReasoningServiceError as e:
            logger.warning(f"Answering question for {module_id} failed, using module docs: {e}")
            return _docs_answer(module, new_level, e)
        except Exception as e:
            logger.exception(f"Unexpected reasoning client error for {module_id}, using module docs: {e}")
            return _docs_answer(module, new_level, e)
        if not isinstance(answer, str) or not answer.strip():
            return _docs_answer(module, new_level, "empty answer")
        return {"answer": answer, "source": "ai", **_level_up(new_level)}

    @app.post("/modules/{module_id}/track")
    def track(module_id: str, request: TrackRequest, user_id: str = Depends(current_user)):
        require_module(module_id)
        engine.track_safely(
            engine.track_action,
            user_id, module_id, request.action,
            topic=request.topic, exercise_id=request.exercise_id,
        )
        return {"ok": True}

    @app.post("/modules/{module_id}/exercise-complete")
    def exercise_complete(module_id: str, request: ExerciseCompleteRequest, user_id: str = Depends(current_user)):
        if not request.exercise_id:
            raise ValidationError("exerciseId is required")
        require_module(module_id)
        engine.track_safely(engine.record_exercise_completed, user_id, module_id, request.exercise_id)
        new_level = engine.track_safely(engine.evaluate, user_id, module_id)
        return {"ok": True, **_level_up(new_level)}

    @app.get("/modules/{module_id}/progress")
    def progress(module_id: str, user_id: str = Depends(current_user)):
        require_module(module_id)
        return engine.progress_snapshot(user_id, module_id)

    # ============== Quiz ==============

    @app.get("/modules/{module_id}/quiz")
    def get_quiz(module_id: str, user_id: str = Depends(current_user)):
        questions = get_quiz_for_module(module_id)
        if not questions:
            raise HTTPException(status_code=404, detail="No quiz found for this module")

        record = engine.get_record(user_id, module_id)
        tier = quiz_tier_for_level(record.skill_level if record else SkillLevel.NOVICE)
        filtered = questions_for_tier(questions, tier)
        response: Dict[str, Any] = {
            "questions": [q.to_dict() for q in filtered],
            "skillTier": tier,
            "totalQuestions": len(filtered),
        }
        if record and record.last_quiz_score is not None:
            response["lastQuiz"] = {
                "score": record.last_quiz_score,
                "takenAt": record.last_quiz_at.isoformat() if record.last_quiz_at else None,
            }
        return response

    @app.post("/modules/{module_id}/quiz")
    def submit_quiz(module_id: str, submission: QuizSubmission, user_id: str = Depends(current_user)):
        if submission.answers is None:
            raise ValidationError("Answers are required")
        questions = get_quiz_for_module(module_id)
        if not questions:
            raise HTTPException(status_code=404, detail="No quiz found for this module")

        grade = grade_quiz(questions, [(a.question_id, a.selected_index) for a in submission.answers])
        engine.track_safely(engine.record_quiz_score, user_id, module_id, grade.score, grade.graded_at)
        new_level = engine.track_safely(engine.evaluate, user_id, module_id)

        return {
            "score": grade.score,
            "correctCount": grade.correct_count,
            "totalQuestions": grade.total,
            "results": [r.to_dict() for r in grade.results],
            **_level_up(new_level),
        }

    return app


def build_default_app() -> FastAPI:
    """App configured from the environment; used as the uvicorn factory."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


# ============== Main ==============

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(build_default_app(), host="0.0.0.0", port=8000)
