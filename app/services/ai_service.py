"""
AI service for enriching study material through a generative-text endpoint.

Requests follow the generateContent shape::

    {"contents": [{"parts": [{"text": prompt}]}]}

and the answer is read from ``candidates[0].content.parts[0].text``.
"""
import time
from dataclasses import dataclass
from typing import Any

import requests

from app.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GenerativeConfig:
    endpoint: str
    api_key: str
    model: str
    confidence: float = 0.95

    @classmethod
    def from_settings(cls, settings) -> "GenerativeConfig":
        return cls(
            endpoint=settings.ai_endpoint,
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            confidence=settings.ai_confidence,
        )


class GenerativeClient:
    """Best-effort client: every failure is logged and reported as ``None``."""

    def __init__(self, config: GenerativeConfig):
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def confidence(self) -> float:
        return self.config.confidence

    def generate(self, prompt: str, generation_config: dict[str, Any] | None = None) -> str | None:
        """
        Send one prompt and return the generated text.

        Args:
            prompt: Full prompt text, sent as a single content part
            generation_config: Optional sampling parameters

        Returns:
            Generated text, or None if the endpoint is unconfigured,
            unreachable, answers non-2xx, or the payload lacks the text field
        """
        if not self.config.endpoint or not self.config.api_key:
            logger.warning("AI endpoint not configured, skipping generation")
            return None

        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config

        start_time = time.time()
        logger.info(f"Starting AI generation | model={self.config.model} | prompt_chars={len(prompt)}")
        try:
            response = requests.post(
                self.config.endpoint,
                params={"key": self.config.api_key},
                json=body,
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as e:
            logger.error(f"AI request failed | error={e}")
            return None

        duration_ms = (time.time() - start_time) * 1000
        if not response.ok:
            logger.error(
                f"AI endpoint returned {response.status_code} | duration={duration_ms:.2f}ms | "
                f"reason={response.reason}"
            )
            return None

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected AI response payload | duration={duration_ms:.2f}ms | error={e!r}")
            return None
        if not isinstance(text, str):
            logger.error(
                f"AI response text is not a string | duration={duration_ms:.2f}ms | "
                f"type={type(text).__name__}"
            )
            return None

        logger.info(f"AI generation completed | duration={duration_ms:.2f}ms | chars={len(text)}")
        return text


# ── Prompts ───────────────────────────────────────────────────


def build_summary_prompt(content: str) -> str:
    return f"""Create a comprehensive and well-structured summary of this educational content. Follow this format:

# Main Topic Title

## Overview
[Brief overview paragraph of the entire content]

## Key Points
* [Key point 1]
* [Key point 2]
* [Key point 3]
...

## Detailed Summary
### Section 1: [Section Title]
[Detailed explanation with important concepts and examples]

### Section 2: [Section Title]
[Detailed explanation with important concepts and examples]
...

## Important Concepts
* **[Concept 1]**: [Brief explanation]
* **[Concept 2]**: [Brief explanation]
...

## Practical Applications
* [Application 1]
* [Application 2]
...

Content to summarize:
{content}"""


def build_key_concepts_prompt(content: str) -> str:
    return f"""Analyze this educational content and extract key concepts. For each concept:
1. Identify the concept name
2. Rate its importance (1-5, where 5 is most important)
3. Provide a detailed description
4. Include relevant examples or applications
5. Note any prerequisites or related concepts

Format as JSON array:
[{{
  "concept": "concept name",
  "importance": importance_number,
  "description": "detailed description",
  "examples": ["example 1", "example 2"],
  "prerequisites": ["prerequisite 1", "prerequisite 2"],
  "relatedConcepts": ["related concept 1", "related concept 2"]
}}]

Return ONLY the JSON array, no other text.

Content to analyze:
{content}"""


def build_mind_map_prompt(content: str) -> str:
    return f"""Create a visually structured mind map for this educational content. The mind map should be hierarchical and comprehensive.

1. Structure:
   - Start with ONE central topic that summarizes the main subject
   - Create 3-5 main branches for key themes/topics
   - Add 2-4 sub-branches under each main branch
   - Include relevant examples, applications, or details as leaf nodes
   - Add cross-connections between related concepts

2. For each node, provide:
   - Clear, concise label
   - Brief description (1-2 sentences)
   - Importance level (1-5)
   - Proper categorization (concept/example/application/definition)

3. For each connection, specify:
   - Relationship type: one of defines, contains, leads_to, example_of, related_to
   - Brief description of how they're related

Format the response as a JSON object with this EXACT structure:
{{
  "nodes": [
    {{
      "id": "unique_id",
      "label": "concise name",
      "description": "1-2 sentence description",
      "category": "concept|example|application|definition",
      "level": "central|main|sub|leaf",
      "importance": 1
    }}
  ],
  "edges": [
    {{
      "source": "parent_node_id",
      "target": "child_node_id",
      "relationship": "defines|contains|leads_to|example_of|related_to",
      "description": "brief description of relationship"
    }}
  ],
  "layout": {{
    "central": ["id_of_central_node"],
    "main_branches": ["ids_of_main_topic_nodes"],
    "sub_branches": ["ids_of_subtopic_nodes"]
  }}
}}

Make sure to:
1. Use descriptive IDs (e.g., "algorithms_intro", "sorting_types")
2. Create a balanced structure with good visual hierarchy
3. Include practical examples and applications
4. Only reference node IDs that exist in "nodes"
5. Keep labels concise but descriptive

Return ONLY the JSON object, no other text.

Content to analyze:
{content}"""


QUIZ_FORMATS = {
    "mcq": (
        'Format each question as: {"question": "...", "options": ["option1", "option2", "option3", "option4"], '
        '"correct": "exact_correct_option_text", "explanation": "..."}. Make sure the "correct" field contains '
        "the exact text of the correct option, not just a letter."
    ),
    "fill": 'Format each question as: {"question": "... ___ ...", "answer": "correct word", "explanation": "..."}',
    "truefalse": 'Format each question as: {"statement": "...", "isTrue": boolean, "explanation": "..."}',
    "flashcard": 'Format each card as: {"front": "...", "back": "...", "hint": "..."}',
}

QUIZ_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}


def build_quiz_prompt(notes: str, quiz_type: str, difficulty: str, subject: str, num_questions: int) -> str:
    """Prompt for a quiz of ``quiz_type`` (one of QUIZ_FORMATS)."""
    return (
        f"You are an expert educational quiz generator. Create {difficulty} level questions for "
        f"{subject} based on the given content. Format the response as a JSON array.\n\n"
        f"Generate {num_questions} {quiz_type} questions from this content:\n\n{notes}\n\n"
        f"{QUIZ_FORMATS[quiz_type]}"
    )
