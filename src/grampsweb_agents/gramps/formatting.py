"""
Response formatting for tool callers.

Tool output is a small Markdown block with a status line, a one-line summary,
optional JSON data and optional next-step hints, so a language model can
parse it reliably.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from grampsweb_agents.gramps.models import DateObject, Gender, Name

if TYPE_CHECKING:
    from grampsweb_agents.gramps.lineage import LineageResult

Status = Literal["success", "partial", "empty", "error"]


def format_person_name(name: Name | dict[str, Any] | None) -> str:
    """Display form of a person name.

    >>> format_person_name({"first_name": "Ada", "surname_list": [{"surname": "Byron"}]})
    'Ada Byron'
    """
    if name is None:
        return "Unknown"
    if isinstance(name, dict):
        name = Name.model_validate(name)

    parts: list[str] = []
    if name.title:
        parts.append(name.title)

    given = name.call_name or name.first_name
    if given:
        parts.append(given)

    if name.surname_list:
        surname = next((s for s in name.surname_list if s.primary), name.surname_list[0])
        full = " ".join(p for p in (surname.prefix, surname.surname) if p)
        if full:
            parts.append(full)
    elif name.surname:
        parts.append(name.surname)

    if name.suffix:
        parts.append(name.suffix)

    return " ".join(parts) if parts else "Unknown"


def format_date(date: DateObject | dict[str, Any] | None) -> str:
    """Date text if the record has it, else ``dd-mm-yyyy`` from its parts."""
    if date is None:
        return ""
    if isinstance(date, dict):
        date = DateObject.model_validate(date)
    if date.text:
        return date.text
    if len(date.dateval) < 3:
        return ""

    day, month, year = date.dateval[:3]
    parts: list[str] = []
    if day:
        parts.append(f"{int(day):02d}")
    if month:
        parts.append(f"{int(month):02d}")
    if year:
        parts.append(str(year))
    return "-".join(parts)


def gender_label(value: int | None) -> str:
    if value is None:
        return "unknown"
    return Gender.parse(value).name.lower()


def format_timestamp(change: int | float) -> str:
    """Gramps change time (epoch seconds) as ISO 8601 UTC."""
    stamp = datetime.fromtimestamp(change, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_tool_response(
    status: Status,
    summary: str,
    data: dict[str, Any] | None = None,
    details: str | None = None,
) -> str:
    lines = [f"**Status:** {status}", f"**Summary:** {summary}"]
    if data:
        lines += ["", "**Data:**", "```json", json.dumps(data, indent=2, default=str), "```"]
    if details:
        lines += ["", "**Details:**", details]
    return "\n".join(lines)


def format_entity_list(
    entity_type: str,
    entities: list[dict[str, Any]],
    total_count: int | None = None,
) -> str:
    """Success response listing entity summaries, or an empty response."""
    if not entities:
        return format_tool_response(
            "empty",
            f"No {entity_type} found",
            details="Try broadening your search query or checking for typos.",
        )

    count = len(entities)
    data: dict[str, Any] = {"count": count, "results": entities}
    details = None
    if total_count is not None and total_count > count:
        data["total_count"] = total_count
        data["has_more"] = True
        details = f"Showing {count} of {total_count} results. Use page/pagesize params for more."

    return format_tool_response(
        "success",
        f"Found {count} {entity_type}",
        data=data,
        details=details,
    )


def _text(value: Any) -> str | None:
    # Notes and place names arrive either as plain strings or {"string"/"value": ...}
    if isinstance(value, dict):
        return value.get("string") or value.get("value")
    return value or None


def summarize_entity(entity: dict[str, Any], entity_type: str) -> dict[str, Any]:
    """Compact, type-specific view of a raw entity record."""
    summary: dict[str, Any] = {
        "handle": entity.get("handle"),
        "gramps_id": entity.get("gramps_id"),
    }

    if entity_type == "people":
        summary["name"] = format_person_name(entity.get("primary_name"))
        summary["gender"] = gender_label(entity.get("gender"))
    elif entity_type == "families":
        summary["father_handle"] = entity.get("father_handle") or None
        summary["mother_handle"] = entity.get("mother_handle") or None
        summary["children_count"] = len(entity.get("child_ref_list") or [])
        summary["type"] = _text(entity.get("type")) or "Unknown"
    elif entity_type == "events":
        summary["type"] = _text(entity.get("type")) or "Unknown"
        summary["date"] = format_date(entity.get("date")) or None
        summary["place_handle"] = entity.get("place") or None
    elif entity_type == "places":
        summary["name"] = _text(entity.get("name")) or entity.get("title") or "Unknown"
        summary["type"] = _text(entity.get("place_type"))
    elif entity_type == "sources":
        summary["title"] = entity.get("title") or "Untitled"
        summary["author"] = entity.get("author") or None
    elif entity_type == "citations":
        summary["page"] = entity.get("page") or None
        summary["source_handle"] = entity.get("source_handle") or None
        summary["confidence"] = entity.get("confidence")
    elif entity_type == "repositories":
        summary["name"] = entity.get("name") or "Unknown"
        summary["type"] = _text(entity.get("type"))
    elif entity_type == "media":
        summary["desc"] = entity.get("desc") or None
        summary["path"] = entity.get("path") or None
        summary["mime"] = entity.get("mime") or None
    elif entity_type == "notes":
        text = _text(entity.get("text")) or ""
        summary["type"] = _text(entity.get("type"))
        summary["preview"] = text[:100] + "..." if len(text) > 100 else text

    return summary


def format_lineage(result: LineageResult) -> str:
    """Tool response for a LineageResult."""
    key = result.direction.value
    noun = key[:-1]

    if result.is_empty:
        hint = "parent_family_list" if key == "ancestors" else "family_list"
        return format_tool_response(
            "empty",
            f"No {key} found for this person",
            details=f"The person may not have family links. Check the person's {hint}.",
        )

    by_generation = {
        f"generation_{gen}": [
            {
                "relationship": e.relationship,
                "name": e.name,
                "gramps_id": e.gramps_id,
                "handle": e.handle,
            }
            for e in entries
        ]
        for gen, entries in result.generations.items()
    }

    total = result.total_count
    return format_tool_response(
        "success",
        f"Found {total} {noun}(s) across {result.generations_retrieved} generation(s)",
        data={
            "total_count": total,
            "generations_retrieved": result.generations_retrieved,
            key: by_generation,
        },
        details=f"Use handles with get to retrieve full details of any {noun}.",
    )
