"""
Task intake: free text in, persisted task out.

The pattern parser and the language model each propose temporal fields.
Whatever the pattern parser resolves is authoritative; the model's proposal
only fills fields the parser left empty.
"""
import json
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Optional

import anthropic

from database import create_parsing_log_db, create_task_db, find_task_by_title_db, get_all_tasks, get_task_db
from datetime_patterns import PATTERN_VERSION, PatternMatcher
from datetime_resolver import DateTimeResolver
from models import PRIORITY_LEVELS, LLMAnalysis, LLMReply, ResolvedTemporal
from notifications import TASK_CREATED, NotificationCenter
from parsing_log import build_parsing_log
from prompts import PROMPT_VERSION, SYSTEM_PROMPT
from task_analysis import find_related_tasks

logger = logging.getLogger(__name__)


def parse_llm_reply(ai_text: str) -> dict[str, Any]:
    """Parse the model's JSON reply, tolerating a markdown code fence around it."""
    ai_text = ai_text.strip()
    if ai_text.startswith("```"):
        lines = ai_text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        ai_text = "\n".join(lines)

    parsed = json.loads(ai_text)
    if not isinstance(parsed, dict):
        raise ValueError("Invalid format: expected a JSON object")
    return parsed


def reconcile_temporal(resolved: Optional[ResolvedTemporal], proposed: Optional[dict[str, Any]]) -> dict[str, Any]:
    """
    Merge the resolver output with the model's temporal proposal.
    due_date and recurrence come from the resolver when it produced them.
    """
    proposed = proposed or {}
    due_date = proposed.get("due_date")
    due_source = "llm" if due_date else None
    recurrence = proposed.get("recurrence")

    if resolved is not None:
        # A bare monthly recurrence resolves to "now", which is not a due date
        if resolved.has_date or resolved.has_time:
            due_date = resolved.instant
            due_source = "pattern"
        if resolved.recurrence is not None:
            recurrence = resolved.recurrence.to_rule()

    return {
        "due_date": due_date,
        "start_date": proposed.get("start_date"),
        "recurrence": recurrence,
        "reminder": proposed.get("reminder"),
        "source": due_source,
    }


def resolve_dependencies(dependencies: list[str]) -> list[str]:
    """Map dependency references (task ids or titles) to task ids. Unknown ones are dropped."""
    resolved = []
    for reference in dependencies:
        if not reference.strip():
            continue
        task = get_task_db(reference) or find_task_by_title_db(reference)
        if task is None:
            logger.info("Dropping unknown dependency %r", reference)
            continue
        if task.id not in resolved:
            resolved.append(task.id)
    return resolved


class TaskIntakeAdapter:
    def __init__(
        self,
        matcher: PatternMatcher,
        resolver: DateTimeResolver,
        notifications: NotificationCenter,
        client: Optional[anthropic.AsyncAnthropic] = None,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 1024,
    ):
        self.matcher = matcher
        self.resolver = resolver
        self.notifications = notifications
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def _ask_llm(self, text: str, today: str) -> LLMReply:
        related = find_related_tasks(get_all_tasks(), text)
        task_context = "\n".join(f"- {task.id}: {task.title}" for task in related) or "(none)"
        system_prompt = SYSTEM_PROMPT.format(today=today, task_context=task_context)

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": f"Create a task from: {text}"}],
        )
        ai_text = response.content[0].text
        logger.debug("LLM response: %s", ai_text)
        return LLMReply.model_validate(parse_llm_reply(ai_text))

    async def create_from_text(
        self,
        text: str,
        request_source: str = "text",
        reference: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Create and persist a task from free text.

        The parse attempt is always recorded in the parsing log, including
        when persisting the task fails.
        """
        started = time.perf_counter()
        llm_latency_ms = 0.0
        errors = None
        reply = LLMReply()
        temporal: dict[str, Any] = {}
        success = False

        matches = self.matcher.match_patterns(text)
        resolved = self.resolver.resolve(matches, reference)

        try:
            if self.client is not None:
                today = (reference or datetime.now()).strftime("%Y-%m-%d")
                llm_started = time.perf_counter()
                try:
                    reply = await self._ask_llm(text, today)
                except anthropic.APIError as e:
                    logger.error("LLM API error: %s", e)
                    errors = {"message": f"LLM API error: {e}"}
                except ValueError as e:
                    # Covers non-JSON text and pydantic.ValidationError on a malformed shape
                    logger.warning("Failed to parse LLM reply: %s", e)
                    errors = {"message": f"Invalid format in LLM reply: {e}"}
                llm_latency_ms = (time.perf_counter() - llm_started) * 1000

            proposed = reply.task
            temporal = reconcile_temporal(resolved, proposed.temporal.model_dump())
            level = proposed.priority.level if proposed.priority.level in PRIORITY_LEVELS else "Medium"

            task = create_task_db(
                str(uuid.uuid4()),
                title=proposed.title or text.strip(),
                description=proposed.description or "",
                priority=level,
                priority_reasoning=proposed.priority.reasoning,
                due_date=temporal["due_date"],
                start_date=temporal["start_date"],
                recurrence=temporal["recurrence"],
                reminder=temporal["reminder"],
                tags=proposed.tags,
                dependencies=resolve_dependencies(proposed.dependencies),
                metadata={"request_source": request_source, "temporal_source": temporal["source"]},
            )
            success = True
        finally:
            self._record_attempt(
                text,
                reply.task.model_dump(),
                temporal,
                resolved,
                success,
                errors,
                processing_time_ms=(time.perf_counter() - started) * 1000,
                llm_latency_ms=llm_latency_ms,
                request_source=request_source,
            )

        self.notifications.publish(TASK_CREATED, {
            "task_id": task.id,
            "message": f"New task created: {task.title}",
            "priority": task.priority,
        })

        analysis = reply.analysis or LLMAnalysis(completeness=1.0)
        if not temporal["due_date"] and "due_date" not in analysis.missing_info:
            analysis = analysis.model_copy(update={"missing_info": [*analysis.missing_info, "due_date"]})

        return {
            "success": True,
            "task": task.model_dump(),
            "temporal": {**temporal, "resolved": resolved.model_dump() if resolved else None},
            "analysis": analysis.model_dump(),
            "clarifying_questions": reply.clarifying_questions,
            "feedback": {
                "voice": f"I've created a task: {task.title}",
                "display": "Task created successfully",
            },
        }

    def _record_attempt(
        self,
        text: str,
        task_fields: dict[str, Any],
        temporal: dict[str, Any],
        resolved: Optional[ResolvedTemporal],
        success: bool,
        errors: Optional[dict[str, Any]],
        processing_time_ms: float,
        llm_latency_ms: float,
        request_source: str,
    ) -> None:
        try:
            record = build_parsing_log(
                text,
                parsed_output={
                    "task": task_fields,
                    "temporal": {**temporal, "resolved": resolved.model_dump() if resolved else None},
                },
                parsing_success=success,
                metrics={
                    "processing_time_ms": round(processing_time_ms, 2),
                    "llm_latency_ms": round(llm_latency_ms, 2),
                    "pattern_match_confidence": 1.0 if resolved is not None else 0.0,
                },
                metadata={
                    "llm_model": self.model if self.client is not None else None,
                    "prompt_version": PROMPT_VERSION,
                    "pattern_version": PATTERN_VERSION,
                    "request_source": request_source,
                },
                errors=errors,
            )
            create_parsing_log_db(record)
        except Exception:
            logger.exception("Failed to log parsing attempt")
