"""Allowed values for enumerated columns shared by schemas and services."""

from typing import Dict, Tuple

PROJECT_STATUSES: Tuple[str, ...] = ("active", "completed", "on_hold")
PRIORITIES: Tuple[str, ...] = ("low", "medium", "high")
RATE_TYPES: Tuple[str, ...] = ("hourly", "fixed")

TASK_STATUSES: Tuple[str, ...] = ("todo", "in_progress", "review", "completed", "hold", "archived")
TASK_INVOICE_STATUSES: Tuple[str, ...] = ("not_invoiced", "created", "invoiced", "paid", "cancelled")

INVOICE_STATUSES: Tuple[str, ...] = ("draft", "sent", "paid", "overdue", "cancelled")
RECEIVABLE_STATUSES: Tuple[str, ...] = ("open", "paid", "cancelled")

# Default progress applied when a task enters a status without an explicit value.
# hold/archived are absent on purpose: they keep the current progress.
STATUS_PROGRESS: Dict[str, int] = {
    "todo": 0,
    "in_progress": 30,
    "review": 80,
    "completed": 100,
}

API_KEY_PERMISSIONS: Tuple[str, ...] = ("read:projects", "read:tasks", "write:tasks", "update:tasks")


def validate_choice(value: str, allowed: Tuple[str, ...], field: str) -> str:
    """Normalize and check an enumerated value; raise ValueError when unknown."""
    cleaned = (value or "").strip().lower()
    if cleaned not in allowed:
        raise ValueError(f"Invalid {field} '{value}'. Allowed: {', '.join(allowed)}")
    return cleaned
