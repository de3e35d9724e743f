import json
import re

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.api.deps import get_current_user, get_generative_client
from app.core.config import settings
from app.core.exceptions import ApiError, BadRequestError
from app.core.logging_config import get_logger
from app.models.user import User
from app.schemas.quiz import (
    QUESTION_MODELS,
    VALID_QUIZ_TYPES,
    MoodleExportRequest,
    QuizGenerateRequest,
    QuizResponse,
)
from app.services.ai_service import QUIZ_GENERATION_CONFIG, GenerativeClient, build_quiz_prompt
from app.services.export_service import ExportError, build_moodle_xml
from app.services.file_processor import FileProcessingError, extract_pdf_bytes

logger = get_logger(__name__)

router = APIRouter(tags=["Quizzes"])

_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


class QuizParseError(ValueError):
    pass


# ============================================
# Helper Functions
# ============================================


def parse_quiz_response(raw: str, quiz_type: str, num_questions: int) -> list[dict]:
    """Pull the JSON array out of a model answer and validate each item for the quiz type.

    Returns exactly ``num_questions`` items; fewer is an error, extras are dropped.
    """
    match = _JSON_ARRAY.search(raw)
    try:
        data = json.loads(match.group(0) if match else raw)
    except json.JSONDecodeError as e:
        raise QuizParseError(f"Response is not valid JSON: {e}")
    if not isinstance(data, list):
        raise QuizParseError("Invalid response format")

    model = QUESTION_MODELS[quiz_type]
    questions = []
    for index, item in enumerate(data, 1):
        try:
            questions.append(model.model_validate(item).model_dump(by_alias=True, exclude_none=True))
        except ValidationError:
            raise QuizParseError(f"Invalid {quiz_type} format for question {index}")

    if len(questions) < num_questions:
        raise QuizParseError(
            f"Could only generate {len(questions)} questions instead of the requested {num_questions}"
        )
    return questions[:num_questions]


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "quiz"


# ============================================
# Quiz generation
# ============================================


@router.post("/generate-quiz", response_model=QuizResponse)
def generate_quiz(
    data: QuizGenerateRequest,
    current_user: User = Depends(get_current_user),
    client: GenerativeClient = Depends(get_generative_client),
):
    """Generate mcq, fill-in, true/false or flashcard questions from note text."""
    if not (data.notes and data.quiz_type and data.difficulty and data.subject):
        raise BadRequestError("Missing required fields")
    if data.quiz_type not in VALID_QUIZ_TYPES:
        raise BadRequestError("Invalid quiz type")

    logger.info(
        f"Generating quiz | user={current_user.id} | type={data.quiz_type} | "
        f"num_questions={data.num_questions}"
    )
    prompt = build_quiz_prompt(
        data.notes, data.quiz_type, data.difficulty, data.subject, data.num_questions,
    )
    raw = client.generate(prompt, generation_config=QUIZ_GENERATION_CONFIG)
    if raw is None:
        raise ApiError(status.HTTP_502_BAD_GATEWAY, "No response generated from the AI service")

    try:
        questions = parse_quiz_response(raw, data.quiz_type, data.num_questions)
    except QuizParseError as e:
        logger.warning(f"Quiz parse failed | type={data.quiz_type} | error={e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Failed to parse quiz questions",
                "debug": {"rawResponse": raw, "parseError": str(e)},
            },
        )

    return QuizResponse(
        questions=questions,
        type=data.quiz_type,
        difficulty=data.difficulty,
        subject=data.subject,
    )


# ============================================
# Export
# ============================================


@router.post("/export/moodle")
def export_moodle(
    data: MoodleExportRequest,
    current_user: User = Depends(get_current_user),
):
    """Export a question set as Moodle XML."""
    title = (data.title or "Quiz").strip() or "Quiz"
    try:
        xml = build_moodle_xml(data.questions, data.type, title)
    except ExportError as e:
        raise BadRequestError(str(e))
    return Response(
        content=xml,
        media_type="application/xml",
        headers={"Content-Disposition": f"attachment; filename={_safe_filename(title)}.xml"},
    )


# ============================================
# PDF to text
# ============================================


@router.post("/upload-pdf")
def upload_pdf(
    pdf: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
):
    """Extract text from a PDF without creating a note."""
    if pdf.content_type != "application/pdf" and not (pdf.filename or "").lower().endswith(".pdf"):
        raise BadRequestError("Only PDF files are allowed")

    data = pdf.file.read()
    if len(data) > settings.max_upload_size_mb * 1024 * 1024:
        raise ApiError(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File size exceeds maximum allowed size of {settings.max_upload_size_mb} MB",
        )
    try:
        text = extract_pdf_bytes(data)
    except FileProcessingError as e:
        logger.error(f"PDF upload failed | file={pdf.filename} | error={e}")
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process PDF")
    return {"success": True, "text": text}
