from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timedelta
import logging
import os
import anthropic
from dotenv import load_dotenv

# Load .env before local modules read their settings
load_dotenv()

from models import ParseTaskRequest, TaskUpdate, TemporalParseRequest
from database import (
    init_db,
    get_all_tasks,
    update_task_db,
    delete_task_db,
    get_task_db,
    get_parsing_logs_db,
)
from datetime_patterns import PatternMatcher, PatternCache, PATTERN_CACHE_SIZE
from datetime_resolver import DateTimeResolver
from feedback import FeedbackProcessor
from intake import TaskIntakeAdapter
from notifications import NotificationCenter, TASK_UPDATED, TASK_DELETED
from task_analysis import get_common_task_times, get_preferred_days, get_tag_distribution

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-5")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")]

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if ANTHROPIC_API_KEY and ANTHROPIC_API_KEY != "your-api-key-here":
    client = anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)
else:
    # Pattern-only intake: tasks are titled with the raw text
    logger.warning("ANTHROPIC_API_KEY not configured, task intake runs without the LLM")
    client = None

pattern_matcher = PatternMatcher(cache=PatternCache(PATTERN_CACHE_SIZE))
resolver = DateTimeResolver()
notifications = NotificationCenter()
feedback_processor = FeedbackProcessor()
intake = TaskIntakeAdapter(
    pattern_matcher,
    resolver,
    notifications,
    client=client,
    model=LLM_MODEL,
    max_tokens=LLM_MAX_TOKENS,
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/parse-task")
async def parse_task(request: ParseTaskRequest) -> dict:
    """Create a task from free text."""
    if not request.user_input.strip():
        raise HTTPException(status_code=400, detail="Please provide task text")
    return await intake.create_from_text(request.user_input, request_source=request.request_source)


@app.post("/api/temporal/parse")
def parse_temporal_endpoint(request: TemporalParseRequest) -> dict:
    """Run only the pattern parser: matches plus the resolved instant."""
    reference = None
    if request.reference:
        try:
            reference = datetime.fromisoformat(request.reference)
        except ValueError:
            raise HTTPException(status_code=400, detail="reference must be an ISO datetime")
    matches = pattern_matcher.match_patterns(request.text)
    resolved = resolver.resolve(matches, reference)
    return {
        "matches": [match.model_dump() for match in matches],
        "resolved": resolved.model_dump() if resolved else None,
    }


@app.get("/tasks")
def get_tasks() -> list[dict]:
    return [task.model_dump() for task in get_all_tasks()]


@app.get("/tasks/insights")
def get_task_insights() -> dict:
    tasks = get_all_tasks()
    return {
        "tags": get_tag_distribution(tasks),
        "common_times": get_common_task_times(tasks),
        "preferred_days": get_preferred_days(tasks),
    }


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate) -> dict:
    result = update_task_db(task_id, **task_data.model_dump(exclude_unset=True))
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    notifications.publish(TASK_UPDATED, {
        "task_id": result.id,
        "message": f"Task updated: {result.title}",
        "priority": result.priority,
    })
    return result.model_dump()


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> dict:
    task = get_task_db(task_id)
    if not task or not delete_task_db(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    notifications.publish(TASK_DELETED, {
        "task_id": task_id,
        "message": f"Task deleted: {task.title}",
        "priority": task.priority,
    })
    return {"status": "deleted"}


@app.get("/api/notifications")
def get_notifications() -> dict:
    return {
        "success": True,
        "notifications": [n.model_dump() for n in notifications.recent()],
    }


@app.post("/api/notifications/{notification_id}/mark-read")
def mark_notification_read(notification_id: int) -> dict:
    notification = notifications.mark_read(notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True, "notification": notification.model_dump()}


@app.post("/api/notifications/clear")
def clear_notifications() -> dict:
    notifications.clear()
    return {"success": True, "message": "All notifications cleared"}


@app.get("/api/parsing-logs/analysis")
def analyze_parsing_logs(hours: int = 24) -> dict:
    """Analyze parse attempts from the last `hours` hours."""
    since = (datetime.now() - timedelta(hours=hours)).isoformat()
    return feedback_processor.analyze_logs(get_parsing_logs_db(since))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
