"""
Parse-attempt records for offline analysis.

Inputs are hashed before anonymization so repeated phrases stay traceable
without storing the raw text.
"""
import hashlib
import re
from datetime import datetime
from typing import Any, Optional

REQUIRED_METRICS = ("processing_time_ms", "llm_latency_ms", "pattern_match_confidence")
REQUIRED_METADATA = ("llm_model", "prompt_version", "pattern_version")

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
# Basic list; a proper NER pass would replace this
COMMON_NAMES = ("john", "david", "susan", "mike", "sarah")
NAME_RE = re.compile(r"\b(?:" + "|".join(COMMON_NAMES) + r")\b", re.IGNORECASE)


def anonymize_text(text: str) -> str:
    text = EMAIL_RE.sub("[EMAIL]", text)
    text = PHONE_RE.sub("[PHONE]", text)
    return NAME_RE.sub("[NAME]", text)


def hash_input(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def build_parsing_log(
    raw_input: str,
    parsed_output: dict[str, Any],
    parsing_success: bool,
    metrics: dict[str, Any],
    metadata: dict[str, Any],
    errors: Optional[Any] = None,
) -> dict[str, Any]:
    """
    Build a parsing log record ready for database.create_parsing_log_db.

    Raises:
        ValueError: parsed_output lacks task/temporal, or a required metric
            or metadata field is missing.
    """
    if "task" not in parsed_output or "temporal" not in parsed_output:
        raise ValueError("parsed_output must contain task and temporal objects")
    missing = [field for field in REQUIRED_METRICS if field not in metrics]
    if missing:
        raise ValueError(f"Missing required metrics: {', '.join(missing)}")
    missing = [field for field in REQUIRED_METADATA if field not in metadata]
    if missing:
        raise ValueError(f"Missing required metadata: {', '.join(missing)}")

    return {
        "input_hash": hash_input(raw_input),
        "anonymized_input": anonymize_text(raw_input),
        "parsed_output": parsed_output,
        "parsing_success": parsing_success,
        "errors": errors,
        "metrics": metrics,
        "metadata": metadata,
        "timestamp": datetime.now().isoformat(),
    }
