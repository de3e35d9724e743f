"""
Quiz export to Moodle XML.

Multiple choice maps to ``multichoice``, true/false to ``truefalse``, and
fill-in-the-blank questions and flashcards to ``shortanswer``.
"""
from typing import Any
from xml.etree import ElementTree

from pydantic import ValidationError

from app.core.logging_config import get_logger
from app.schemas.quiz import QUESTION_MODELS

logger = get_logger(__name__)


class ExportError(ValueError):
    pass


def _text_element(parent: ElementTree.Element, tag: str, text: str, **attrs) -> ElementTree.Element:
    element = ElementTree.SubElement(parent, tag, attrs)
    ElementTree.SubElement(element, "text").text = text
    return element


def _answer(parent: ElementTree.Element, text: str, correct: bool) -> None:
    _text_element(parent, "answer", text, fraction="100" if correct else "0")


def _question(quiz: ElementTree.Element, qtype: str, name: str, text: str) -> ElementTree.Element:
    question = ElementTree.SubElement(quiz, "question", {"type": qtype})
    _text_element(question, "name", name)
    _text_element(question, "questiontext", text, format="html")
    ElementTree.SubElement(question, "defaultgrade").text = "1.0"
    return question


def build_moodle_xml(questions: list[dict[str, Any]], quiz_type: str, title: str) -> str:
    """Render validated questions of one quiz type as a Moodle XML document."""
    if not questions:
        raise ExportError("Invalid or empty questions array")
    if quiz_type not in QUESTION_MODELS:
        raise ExportError("Invalid quiz type")

    model = QUESTION_MODELS[quiz_type]
    quiz = ElementTree.Element("quiz")
    for index, raw in enumerate(questions, 1):
        try:
            item = model.model_validate(raw)
        except ValidationError as e:
            raise ExportError(f"Question {index} is not a valid {quiz_type} question: {e.error_count()} errors")
        name = f"{title} - Question {index}"

        if quiz_type == "mcq":
            question = _question(quiz, "multichoice", name, item.question)
            ElementTree.SubElement(question, "shuffleanswers").text = "true"
            ElementTree.SubElement(question, "answernumbering").text = "abc"
            ElementTree.SubElement(question, "single").text = "true"
            for option in item.options:
                _answer(question, option, option == item.correct)
        elif quiz_type == "truefalse":
            question = _question(quiz, "truefalse", name, item.statement)
            _answer(question, "true", item.is_true)
            _answer(question, "false", not item.is_true)
        elif quiz_type == "fill":
            question = _question(quiz, "shortanswer", name, item.question)
            _answer(question, item.answer, True)
        else:
            question = _question(quiz, "shortanswer", name, item.front)
            _answer(question, item.back, True)

        explanation = getattr(item, "explanation", None) or getattr(item, "hint", None)
        if explanation:
            _text_element(question, "generalfeedback", explanation, format="html")

    logger.info(f"Built Moodle export | title={title} | type={quiz_type} | questions={len(questions)}")
    body = ElementTree.tostring(quiz, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'
