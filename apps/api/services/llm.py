import logging
import os
import re
import time
from typing import Any, List, Optional

from ..errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", "gemini-2.5-flash")
PROJECT_ID = os.getenv("PROJECT_ID")
VERTEX_LOCATION = os.getenv("VERTEX_LOCATION", "us-central1")

SYSTEM_PROMPT = (
    "You are an expert book summarizer who creates concise, valuable summaries "
    "that capture the essence of books."
)

_client: Optional[Any] = None


def get_client():
    global _client
    if _client is None:
        from google import genai  # lazy import

        _client = genai.Client(vertexai=True, project=PROJECT_ID, location=VERTEX_LOCATION)
    return _client


def complete(prompt: str, system: Optional[str] = SYSTEM_PROMPT) -> str:
    """Single request/response completion. Returns the stripped text."""
    start = time.time()
    config = {"temperature": 0.7, "max_output_tokens": 4000}
    if system:
        config["system_instruction"] = system
    try:
        resp = get_client().models.generate_content(model=SUMMARY_MODEL, contents=[prompt], config=config)
    except Exception as e:
        logger.error("completion call failed", exc_info=True)
        raise UpstreamUnavailable("Summary generation service is unavailable") from e
    text = (resp.text or "").strip()
    logger.info("completion model=%s chars=%d latency_ms=%d", SUMMARY_MODEL, len(text), int((time.time() - start) * 1000))
    if not text:
        raise UpstreamUnavailable("Summary generation returned no content")
    return text


def build_summary_prompt(title: str, author: Optional[str], reading_time: int, source_text: Optional[str]) -> str:
    excerpt = (source_text or "")[:2000]
    by = f" by {author}" if author else ""
    prompt = (
        f'Create a comprehensive summary of the book "{title}"{by}.\n\n'
        "The summary should include:\n"
        "1. Key insights (5-7 main points)\n"
        "2. Chapter-by-chapter summary\n"
        "3. Practical takeaways\n"
        "4. Who should read this book\n\n"
        f"Make the summary engaging and actionable. Target reading time: {reading_time} minutes.\n"
    )
    if excerpt:
        prompt += f"\nBook text excerpt: {excerpt}..."
    return prompt


_SECTION_START = re.compile(r"(?=^\s*\d+\.\s+)", re.M)


def split_sections(text: str) -> List[str]:
    """Split free text at numbered list items ("1. ", "2. ", ...).

    Text without numbering comes back as a single section.
    """
    parts = [p.strip() for p in _SECTION_START.split(text or "")]
    return [p for p in parts if p]
