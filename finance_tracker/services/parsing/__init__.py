"""Natural-language parsing of transaction notes."""

from finance_tracker.services.parsing.gemini_parser import (
    GeminiTextParser,
    ParsingError,
    TextParsingInterface,
    build_prompt,
    extract_json,
)

__all__ = [
    "GeminiTextParser",
    "ParsingError",
    "TextParsingInterface",
    "build_prompt",
    "extract_json",
]
