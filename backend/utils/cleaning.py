"""
Response cleaning utilities for LLM outputs.

Gemini occasionally wraps JSON in markdown fences or pads a short nudge with
headings and reasoning; these helpers strip that before the text reaches the
transcript or the evaluation parser.
"""
import re
from typing import Optional


class ResponseCleaner:
    """
    Cleans coach nudges and evaluator JSON.
    """

    # Paired markers only; a lone underscore inside a word is not emphasis
    EMPHASIS_PATTERNS = (
        r'\*\*(.+?)\*\*',
        r'(?<!\w)__(?!\s)(.+?)(?<!\s)__(?!\w)',
        r'(?<![\w*])\*(?![\s*])(.+?)(?<![\s*])\*(?![\w*])',
        r'(?<!\w)_(?![\s_])(.+?)(?<![\s_])_(?!\w)',
        r'`([^`]+)`',
    )

    @classmethod
    def strip_fences(cls, text: str) -> str:
        """Remove ```json ... ``` style fences."""
        cleaned = re.sub(r'^\s*```[a-zA-Z]*\s*', '', text)
        cleaned = re.sub(r'\s*```\s*$', '', cleaned)
        return cleaned.strip()

    @classmethod
    def clean_nudge(cls, text: str) -> str:
        """
        Tidy a coaching nudge for the transcript and for speech.

        Removes think blocks, headings and paired markdown emphasis, then
        collapses whitespace. The wording itself is left alone, so
        identifiers like sync_state and abbreviations like e.g. survive.
        """
        if not text:
            return ""

        cleaned = re.sub(r'<think>.*?</think>', '', text, flags=re.DOTALL | re.IGNORECASE)
        cleaned = re.sub(r'^\s*#+\s*', '', cleaned, flags=re.MULTILINE)
        for pattern in cls.EMPHASIS_PATTERNS:
            cleaned = re.sub(pattern, r'\1', cleaned)
        cleaned = re.sub(r'^\s*(?:Nudge|Coach)\s*:\s*', '', cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r'\s+', ' ', cleaned).strip()

        return cleaned

    @classmethod
    def extract_json_object(cls, text: str) -> Optional[str]:
        """
        Return the outermost {...} block of a response, or None.

        The raw response is never modified beyond fence stripping; callers keep
        the original text for error reporting.
        """
        if not text:
            return None
        cleaned = cls.strip_fences(text)
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        return cleaned[start:end + 1]
