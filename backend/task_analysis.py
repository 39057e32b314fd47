"""
Lightweight analytics over existing tasks, used to give the assistant context
and to power the insights endpoint.
"""
from collections import Counter
from datetime import datetime
from typing import Optional

from models import Task, WEEKDAY_NAMES


def _due(task: Task) -> Optional[datetime]:
    if not task.due_date:
        return None
    try:
        return datetime.fromisoformat(task.due_date)
    except ValueError:
        return None


def find_related_tasks(tasks: list[Task], text: str) -> list[Task]:
    """Last three tasks sharing a word longer than three characters with text."""
    if not text or not tasks:
        return []
    words = [word for word in text.lower().split() if len(word) > 3]
    if not words:
        return []
    related = [
        task for task in tasks
        if any(word in f"{task.title} {task.description}".lower() for word in words)
    ]
    return related[-3:]


def get_tag_distribution(tasks: list[Task]) -> list[dict]:
    if not tasks:
        return []
    counts = Counter(tag for task in tasks for tag in task.tags)
    return [
        {"tag": tag, "count": count, "percentage": round(count / len(tasks) * 100)}
        for tag, count in counts.most_common()
    ]


def get_common_task_times(tasks: list[Task]) -> list[dict]:
    """Top three due times (HH:MM) across tasks."""
    if not tasks:
        return []
    counts = Counter(due.strftime("%H:%M") for due in map(_due, tasks) if due)
    return [
        {"time": time, "frequency": count, "percentage": round(count / len(tasks) * 100)}
        for time, count in counts.most_common(3)
    ]


def get_preferred_days(tasks: list[Task]) -> list[dict]:
    if not tasks:
        return []
    counts = Counter(WEEKDAY_NAMES[due.weekday()] for due in map(_due, tasks) if due)
    return [
        {"day": day, "frequency": count, "percentage": round(count / len(tasks) * 100)}
        for day, count in counts.most_common()
    ]
