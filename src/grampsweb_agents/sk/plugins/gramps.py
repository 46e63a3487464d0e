"""Semantic Kernel plugin exposing Gramps Web operations as AI tools."""

import asyncio
import functools
import json
from typing import Annotated, Any

from pydantic import BaseModel, Field
from semantic_kernel.functions import kernel_function

from grampsweb_agents.gramps.client import (
    ENDPOINTS,
    ENTITY_TYPES,
    GrampsWebClient,
    entity_endpoint,
    normalize_entity_type,
)
from grampsweb_agents.gramps.errors import GrampsAPIError, NotFoundError, format_error
from grampsweb_agents.gramps.formatting import (
    format_entity_list,
    format_lineage,
    format_person_name,
    format_timestamp,
    format_tool_response,
    gender_label,
    summarize_entity,
)
from grampsweb_agents.gramps.lineage import LineageQuery, LineageTraversal
from grampsweb_agents.gramps.models import CHILD_RELATIONS, Gender
from grampsweb_agents.logging import get_logger

logger = get_logger(__name__)

MAX_BATCH = 50
RECENT_FALLBACK_TYPES = ("people", "families", "events", "places", "sources")

# Gramps Date modifier for free-text dates
DATE_TEXT_ONLY = 6

CONFIDENCE_LEVELS = {0: "Very Low", 1: "Low", 2: "Normal", 3: "High", 4: "Very High"}


class PageQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    pagesize: int = Field(default=20, ge=1, le=100)


class BatchQuery(BaseModel):
    handles: list[str] = Field(min_length=1, max_length=MAX_BATCH)


def tool_errors(func):
    """Turn expected failures into an ``Error: ...`` tool result."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (GrampsAPIError, ValueError) as e:
            logger.warning("tool_failed", tool=func.__name__, error=str(e))
            return f"Error: {format_error(e)}"

    return wrapper


def _singular(entity_type: str) -> str:
    if entity_type == "people":
        return "person"
    if entity_type == "families":
        return "family"
    if entity_type == "repositories":
        return "repository"
    return entity_type.removesuffix("s")


def _records(response: Any) -> list[dict[str, Any]]:
    if isinstance(response, list):
        return [r for r in response if isinstance(r, dict)]
    if isinstance(response, dict) and response:
        return [response]
    return []


def extract_saved_entity(response: Any, class_name: str) -> dict[str, Any]:
    """Pick the saved object out of a POST/PUT response.

    Gramps Web answers writes with a list of change records; the entry for
    ``class_name`` (or the first one) describes the object we saved.

    Raises:
        GrampsAPIError: If no handle can be found in the response
    """
    records = _records(response)
    record = next((r for r in records if r.get("_class") == class_name), None)
    if record is None and records:
        record = records[0]
    record = record or {}

    entity = record.get("new") if isinstance(record.get("new"), dict) else record
    handle = record.get("handle") or entity.get("handle")
    if not handle:
        raise GrampsAPIError(
            f"API did not return a handle for the saved {class_name}. "
            f"Response: {json.dumps(response, default=str)[:500]}"
        )
    return {**entity, "handle": handle}


def _child_ref(handle: str, frel: str = "Birth", mrel: str = "Birth") -> dict[str, Any]:
    for rel in (frel, mrel):
        if rel not in CHILD_RELATIONS:
            raise ValueError(f"Invalid child relationship {rel!r}. Valid: {', '.join(CHILD_RELATIONS)}")
    return {"_class": "ChildRef", "ref": handle, "frel": frel, "mrel": mrel}


def _child_ref_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise ValueError("child_ref_list must be a list of handles or child references")
    refs = []
    for child in value:
        if isinstance(child, str) and child:
            refs.append({"_class": "ChildRef", "ref": child})
        elif isinstance(child, dict) and child.get("ref"):
            refs.append({"_class": "ChildRef", **child})
        else:
            raise ValueError(f"Invalid child reference: {child!r}")
    return refs


def _with_optional(body: dict[str, Any], **fields: Any) -> dict[str, Any]:
    """Add the fields that were actually given."""
    body.update({key: value for key, value in fields.items() if value not in ("", None)})
    return body


def _parse_changes(changes_json: str) -> dict[str, Any]:
    changes = json.loads(changes_json) if changes_json.strip() else {}
    if not isinstance(changes, dict):
        raise ValueError("changes_json must be a JSON object")
    # handle is immutable
    changes.pop("handle", None)
    changes.pop("_class", None)
    if not changes:
        raise ValueError("No changes provided")
    return changes


def merge_name(existing: dict[str, Any] | None, updates: dict[str, Any]) -> dict[str, Any]:
    """Merge name fields into an existing name; ``surname`` edits the primary surname."""
    name = dict(existing or {})
    name["_class"] = "Name"
    for key, value in updates.items():
        if key == "nickname":
            name["call_name"] = value
        elif key == "surname":
            surnames = [dict(s) for s in name.get("surname_list") or []]
            if surnames:
                index = next((i for i, s in enumerate(surnames) if s.get("primary")), 0)
                surnames[index]["surname"] = value
            else:
                surnames = [{"_class": "Surname", "surname": value, "primary": True}]
            name["surname_list"] = surnames
        else:
            name[key] = value
    return name


class GrampsPlugin:
    """Plugin for reading and editing a Gramps Web family tree.

    Every function returns a Markdown-formatted result (status, summary,
    JSON data, next steps). Expected failures are returned as text starting
    with ``Error:`` rather than raised, so the calling model can react.
    """

    def __init__(self, client: GrampsWebClient):
        self.client = client
        self.lineage = LineageTraversal(client)

    async def _fetch_record(self, path: str) -> dict[str, Any]:
        record = await self.client.get(path)
        if not isinstance(record, dict) or not record:
            raise GrampsAPIError(f"Malformed record in response: {str(record)[:200]}", None, path)
        return dict(record)

    # =========================================
    # Analysis
    # =========================================

    @kernel_function(
        name="tree_stats",
        description=(
            "Get record counts by type for the family tree. "
            "Good first call to understand the tree before searching."
        ),
    )
    @tool_errors
    async def tree_stats(self) -> Annotated[str, "Record counts per entity type"]:
        """Count records per type, via metadata or per-type listing."""
        stats = dict.fromkeys(ENTITY_TYPES, 0)
        try:
            metadata = await self.client.get(ENDPOINTS["metadata"])
            counts = metadata.get("object_counts") if isinstance(metadata, dict) else None
            counts = counts or {}
            for entity_type in ENTITY_TYPES:
                value = counts.get(entity_type)
                if isinstance(value, int) and not isinstance(value, bool):
                    stats[entity_type] = value
        except GrampsAPIError as e:
            logger.info("metadata_unavailable", error=str(e))
            for entity_type in ENTITY_TYPES:
                try:
                    response = await self.client.get(ENDPOINTS[entity_type], {"pagesize": 1})
                except GrampsAPIError:
                    continue
                if isinstance(response, list):
                    stats[entity_type] = len(response)

        total = sum(stats.values())
        if total == 0:
            return format_tool_response(
                "empty",
                "The family tree is empty",
                details="Use create_person to add your first family member.",
            )
        return format_tool_response(
            "success",
            f"Family tree contains {total:,} total records",
            data=stats,
            details="Use search or find to explore specific records." if stats["people"] else None,
        )

    @kernel_function(
        name="recent_changes",
        description="List recently added or modified records, newest first.",
    )
    @tool_errors
    async def recent_changes(
        self,
        page: Annotated[int, "Page number (1-indexed)"] = 1,
        pagesize: Annotated[int, "Results per page (max 100)"] = 20,
    ) -> Annotated[str, "Timestamped changes with handles"]:
        """List recent changes, falling back to sorting records by change time."""
        query = PageQuery(page=page, pagesize=pagesize)
        try:
            response = await self.client.get(
                ENDPOINTS["recent"], {"page": query.page, "pagesize": query.pagesize}
            )
            changes = [
                {
                    "timestamp": format_timestamp(item.get("change") or 0),
                    "type": item.get("object_type"),
                    "gramps_id": item.get("gramps_id"),
                    "handle": item.get("handle"),
                }
                for item in _records(response)
            ]
        except GrampsAPIError as e:
            logger.info("recent_endpoint_unavailable", error=str(e))
            changes = await self._recent_by_change_time(query.pagesize)

        if not changes:
            return format_tool_response(
                "empty",
                "No recent changes found",
                details="The tree may be new or have no activity tracking.",
            )
        return format_tool_response(
            "success",
            f"Found {len(changes)} recent change(s)",
            data={"page": query.page, "count": len(changes), "changes": changes},
            details="Use handles with get to see full details of changed records.",
        )

    async def _recent_by_change_time(self, limit: int) -> list[dict[str, Any]]:
        found: list[tuple[int, str, dict[str, Any]]] = []
        for entity_type in RECENT_FALLBACK_TYPES:
            try:
                response = await self.client.get(ENDPOINTS[entity_type], {"pagesize": 10})
            except GrampsAPIError:
                continue
            for entity in _records(response):
                if entity.get("change"):
                    found.append((entity["change"], entity_type, entity))

        found.sort(key=lambda item: item[0], reverse=True)
        return [
            {
                "timestamp": format_timestamp(change),
                "type": entity_type,
                "gramps_id": entity.get("gramps_id"),
                "handle": entity.get("handle"),
            }
            for change, entity_type, entity in found[:limit]
        ]

    @kernel_function(
        name="get_ancestors",
        description="Traverse the ancestry upward from a person: parents, grandparents and beyond.",
    )
    @tool_errors
    async def get_ancestors(
        self,
        handle: Annotated[str, "Handle of the starting person"],
        generations: Annotated[int, "Generations to retrieve (1-10)"] = 3,
    ) -> Annotated[str, "Ancestors grouped by generation"]:
        query = LineageQuery(handle=handle, generations=generations)
        result = await self.lineage.ancestors_of(query.handle, query.generations)
        return format_lineage(result)

    @kernel_function(
        name="get_descendants",
        description="Traverse descendants downward from a person: children, grandchildren and beyond.",
    )
    @tool_errors
    async def get_descendants(
        self,
        handle: Annotated[str, "Handle of the starting person"],
        generations: Annotated[int, "Generations to retrieve (1-10)"] = 3,
    ) -> Annotated[str, "Descendants grouped by generation"]:
        query = LineageQuery(handle=handle, generations=generations)
        result = await self.lineage.descendants_of(query.handle, query.generations)
        return format_lineage(result)

    # =========================================
    # Search & retrieval
    # =========================================

    @kernel_function(
        name="search",
        description=(
            "Structured search with GQL (Gramps Query Language), e.g. "
            "'primary_name.first_name ~ John' or 'gender = 1'."
        ),
    )
    @tool_errors
    async def search(
        self,
        query: Annotated[str, "GQL query string"],
        entity_type: Annotated[str, "Entity type: people, families, events, places, sources, ..."],
        page: Annotated[int, "Page number (1-indexed)"] = 1,
        pagesize: Annotated[int, "Results per page (max 100)"] = 20,
    ) -> Annotated[str, "Matching entity summaries"]:
        entity_type = normalize_entity_type(entity_type)
        paging = PageQuery(page=page, pagesize=pagesize)
        response = await self.client.get(
            ENDPOINTS[entity_type],
            {"gql": query, "page": paging.page, "pagesize": paging.pagesize},
        )
        entities = [summarize_entity(e, entity_type) for e in _records(response)]
        if not entities:
            return format_tool_response(
                "empty",
                f"No {entity_type} found matching '{query}'",
                details="GQL syntax: property operator value. Examples: gender = 1, primary_name.first_name ~ John",
            )
        return format_entity_list(entity_type, entities)

    @kernel_function(
        name="find",
        description="Full-text search across all record types at once.",
    )
    @tool_errors
    async def find(
        self,
        query: Annotated[str, "Full-text search query"],
        page: Annotated[int, "Page number (1-indexed)"] = 1,
        pagesize: Annotated[int, "Results per page (max 100)"] = 20,
    ) -> Annotated[str, "Mixed results with types and handles"]:
        paging = PageQuery(page=page, pagesize=pagesize)
        response = await self.client.get(
            ENDPOINTS["search"],
            {"query": query, "page": paging.page, "pagesize": paging.pagesize},
        )
        total = None
        if isinstance(response, dict):
            total = response.get("total_count")
            response = response.get("data") or []

        results = []
        for item in _records(response):
            obj = item.get("object") or {}
            results.append({
                "type": item.get("object_type"),
                "handle": obj.get("handle") or item.get("handle"),
                "gramps_id": obj.get("gramps_id"),
            })

        if not results:
            return format_tool_response(
                "empty",
                f"No records found matching '{query}'",
                details="Try a shorter query, an alternate spelling or a Gramps ID.",
            )
        return format_entity_list("records", results, total)

    @kernel_function(
        name="get",
        description="Get full details of one record by handle or Gramps ID.",
    )
    @tool_errors
    async def get(
        self,
        entity_type: Annotated[str, "Entity type, e.g. people or families"],
        handle: Annotated[str, "Record handle or Gramps ID (e.g. I0001)"],
    ) -> Annotated[str, "Full record as JSON"]:
        entity_type = normalize_entity_type(entity_type)
        noun = _singular(entity_type)
        try:
            entity = await self.client.get(entity_endpoint(entity_type, handle))
        except NotFoundError:
            matches = _records(await self.client.get(ENDPOINTS[entity_type], {"gramps_id": handle}))
            if not matches:
                return format_tool_response(
                    "empty",
                    f"{noun.capitalize()} not found: {handle}",
                    details="Use find to search for the correct handle or ID.",
                )
            entity = matches[0]

        return format_tool_response(
            "success",
            f"Found {noun} {entity.get('gramps_id', '')}".rstrip(),
            data=entity,
            details=f"Handle: {entity.get('handle')} - use this handle to reference in other operations.",
        )

    @kernel_function(
        name="list_entities",
        description="List records of one type with pagination.",
    )
    @tool_errors
    async def list_entities(
        self,
        entity_type: Annotated[str, "Entity type to list"],
        page: Annotated[int, "Page number (1-indexed)"] = 1,
        pagesize: Annotated[int, "Results per page (max 100)"] = 20,
    ) -> Annotated[str, "Entity summaries"]:
        entity_type = normalize_entity_type(entity_type)
        paging = PageQuery(page=page, pagesize=pagesize)
        response = await self.client.get(
            ENDPOINTS[entity_type], {"page": paging.page, "pagesize": paging.pagesize}
        )
        entities = [summarize_entity(e, entity_type) for e in _records(response)]
        if not entities:
            return format_tool_response(
                "empty",
                f"No {entity_type} found in the database",
                details=f"Use create_{_singular(entity_type)} to add new records.",
            )
        return format_entity_list(entity_type, entities)

    @kernel_function(
        name="get_batch",
        description="Get up to 50 records of one type by handle in a single call.",
    )
    @tool_errors
    async def get_batch(
        self,
        entity_type: Annotated[str, "Entity type of all handles"],
        handles: Annotated[list[str], "Record handles (max 50)"],
    ) -> Annotated[str, "Found records and per-handle failures"]:
        entity_type = normalize_entity_type(entity_type)
        batch = BatchQuery(handles=handles)

        async def fetch(handle: str) -> tuple[str, dict[str, Any] | None, str | None]:
            try:
                return handle, await self.client.get(entity_endpoint(entity_type, handle)), None
            except GrampsAPIError as e:
                return handle, None, format_error(e)

        results = await asyncio.gather(*(fetch(h) for h in batch.handles))
        found = [entity for _, entity, _ in results if entity]
        failed = [{"handle": h, "error": err} for h, _, err in results if err]

        if not found:
            return format_tool_response(
                "empty",
                f"None of the {len(batch.handles)} requested {entity_type} were found",
                data={"failed": failed},
                details="Verify handles using find or list_entities first.",
            )

        data: dict[str, Any] = {"count": len(found), "results": found}
        if failed:
            data["failed"] = failed
        return format_tool_response(
            "success",
            f"Retrieved {len(found)} of {len(batch.handles)} {entity_type}",
            data=data,
            details=f"{len(failed)} handle(s) could not be retrieved." if failed else None,
        )

    # =========================================
    # Create
    # =========================================

    @kernel_function(
        name="create_person",
        description="Create a new person with a primary name and gender.",
    )
    @tool_errors
    async def create_person(
        self,
        first_name: Annotated[str, "Given name"],
        surname: Annotated[str, "Family name"],
        gender: Annotated[str, "male, female or unknown"] = "unknown",
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. I0042)"] = "",
    ) -> Annotated[str, "Created person with handle"]:
        name = {"_class": "Name", "first_name": first_name}
        if surname:
            name["surname_list"] = [{"_class": "Surname", "surname": surname, "primary": True}]
        body: dict[str, Any] = {
            "_class": "Person",
            "primary_name": name,
            "gender": int(Gender.parse(gender)),
        }
        if gramps_id:
            body["gramps_id"] = gramps_id

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["people"], body), "Person")
        display = format_person_name(name)
        logger.info("person_created", handle=saved["handle"])
        return format_tool_response(
            "success",
            f"Created person: {display}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "name": display,
                "gender": gender_label(body["gender"]),
            },
            details=f'Use handle "{saved["handle"]}" to link this person to families with create_family.',
        )

    @kernel_function(
        name="create_family",
        description="Create a family linking parents and children by handle.",
    )
    @tool_errors
    async def create_family(
        self,
        father_handle: Annotated[str, "Father's person handle"] = "",
        mother_handle: Annotated[str, "Mother's person handle"] = "",
        child_handles: Annotated[list[str] | None, "Children's person handles"] = None,
        family_type: Annotated[str, "Relationship type, e.g. Married or Unknown"] = "",
    ) -> Annotated[str, "Created family with handle"]:
        children = [_child_ref(h) for h in child_handles or []]
        body: dict[str, Any] = {"_class": "Family", "child_ref_list": children}
        if father_handle:
            body["father_handle"] = father_handle
        if mother_handle:
            body["mother_handle"] = mother_handle
        if family_type:
            body["type"] = family_type

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["families"], body), "Family")

        members = [role for role, h in (("father", father_handle), ("mother", mother_handle)) if h]
        if children:
            members.append(f"{len(children)} child(ren)")
        return format_tool_response(
            "success",
            f"Created family: {saved.get('gramps_id') or saved['handle']}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "father_handle": father_handle or None,
                "mother_handle": mother_handle or None,
                "children_count": len(children),
                "type": family_type or "Unknown",
            },
            details=(
                f"Family links {', '.join(members)}. Add marriage or other events with create_event."
                if members
                else "Add family members with add_child_to_family or update_family."
            ),
        )

    @kernel_function(
        name="create_event",
        description="Create a life event such as Birth, Death or Marriage.",
    )
    @tool_errors
    async def create_event(
        self,
        event_type: Annotated[str, "Event type, e.g. Birth"],
        date_text: Annotated[str, "Date as free text, e.g. 'about 1850'"] = "",
        description: Annotated[str, "Event description"] = "",
        place_handle: Annotated[str, "Place handle"] = "",
    ) -> Annotated[str, "Created event with handle"]:
        body: dict[str, Any] = {"_class": "Event", "type": event_type}
        if date_text:
            body["date"] = {"_class": "Date", "modifier": DATE_TEXT_ONLY, "text": date_text}
        if description:
            body["description"] = description
        if place_handle:
            body["place"] = place_handle

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["events"], body), "Event")
        return format_tool_response(
            "success",
            f"Created event: {event_type} ({saved.get('gramps_id') or saved['handle']})",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "type": event_type,
                "date": date_text or None,
                "place_handle": place_handle or None,
                "description": description or None,
            },
            details=f'Link this event to a person or family using event_ref_list with handle "{saved["handle"]}".',
        )

    @kernel_function(
        name="create_note",
        description="Create a free-text note.",
    )
    @tool_errors
    async def create_note(
        self,
        text: Annotated[str, "Note text"],
        note_type: Annotated[str, "Note type, e.g. General or Research"] = "General",
    ) -> Annotated[str, "Created note with handle"]:
        if not text.strip():
            raise ValueError("Note text must not be empty")
        body = {
            "_class": "Note",
            "text": {"_class": "StyledText", "string": text, "tags": []},
            "type": note_type,
        }
        saved = extract_saved_entity(await self.client.post(ENDPOINTS["notes"], body), "Note")
        return format_tool_response(
            "success",
            f"Created note: {saved.get('gramps_id') or saved['handle']}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "type": note_type,
                "preview": text[:100],
            },
            details=f'Attach this note to a record by adding "{saved["handle"]}" to its note_list.',
        )

    @kernel_function(
        name="create_place",
        description="Create a place (city, parish, cemetery, address). Returns a handle to use in create_event.",
    )
    @tool_errors
    async def create_place(
        self,
        name: Annotated[str, "Place name, e.g. Springfield"] = "",
        title: Annotated[str, "Full place title"] = "",
        place_type: Annotated[str, "Place type, e.g. City, Country, Parish"] = "",
        lat: Annotated[str, "Latitude"] = "",
        long: Annotated[str, "Longitude"] = "",
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. P0042)"] = "",
    ) -> Annotated[str, "Created place with handle"]:
        if not (name.strip() or title.strip()):
            raise ValueError("Provide a place name or title")
        body = _with_optional(
            {"_class": "Place"},
            gramps_id=gramps_id,
            title=title,
            lat=lat,
            long=long,
            place_type=place_type,
        )
        if name:
            body["name"] = {"_class": "PlaceName", "value": name}

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["places"], body), "Place")
        display = name or title or saved.get("gramps_id")
        return format_tool_response(
            "success",
            f"Created place: {display}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "name": display,
                "type": place_type or None,
                "coordinates": {"lat": lat, "long": long} if lat and long else None,
            },
            details=f'Use handle "{saved["handle"]}" when creating events to link them to this place.',
        )

    @kernel_function(
        name="create_source",
        description="Create a source (book, register, website) that citations can point to.",
    )
    @tool_errors
    async def create_source(
        self,
        title: Annotated[str, "Source title"],
        author: Annotated[str, "Author"] = "",
        pubinfo: Annotated[str, "Publication information"] = "",
        abbrev: Annotated[str, "Abbreviation"] = "",
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. S0042)"] = "",
    ) -> Annotated[str, "Created source with handle"]:
        if not title.strip():
            raise ValueError("Source title must not be empty")
        body = _with_optional(
            {"_class": "Source", "title": title},
            gramps_id=gramps_id,
            author=author,
            pubinfo=pubinfo,
            abbrev=abbrev,
        )

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["sources"], body), "Source")
        return format_tool_response(
            "success",
            f"Created source: {title}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "title": title,
                "author": author or None,
                "publication": pubinfo or None,
            },
            details=f'Create citations of this source with create_citation using source_handle "{saved["handle"]}".',
        )

    @kernel_function(
        name="create_citation",
        description="Create a citation pointing at a page or entry within a source.",
    )
    @tool_errors
    async def create_citation(
        self,
        source_handle: Annotated[str, "Handle of the cited source"],
        page: Annotated[str, "Page or location within the source"] = "",
        confidence: Annotated[int, "Confidence 0 (very low) to 4 (very high)"] = 2,
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. C0042)"] = "",
    ) -> Annotated[str, "Created citation with handle"]:
        if not source_handle.strip():
            raise ValueError("source_handle must not be empty")
        if confidence not in CONFIDENCE_LEVELS:
            raise ValueError(f"Confidence must be between 0 and 4, got {confidence}")
        body = _with_optional(
            {"_class": "Citation", "source_handle": source_handle, "confidence": confidence},
            gramps_id=gramps_id,
            page=page,
        )

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["citations"], body), "Citation")
        return format_tool_response(
            "success",
            f"Created citation: {saved.get('gramps_id') or saved['handle']}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "source_handle": source_handle,
                "page": page or None,
                "confidence": CONFIDENCE_LEVELS[confidence],
            },
            details=f'Attach this citation to records by adding "{saved["handle"]}" to their citation_list.',
        )

    @kernel_function(
        name="create_media",
        description="Create a media object (photo, scan, document) by file path or URL.",
    )
    @tool_errors
    async def create_media(
        self,
        path: Annotated[str, "File path or URL"],
        mime: Annotated[str, "MIME type, e.g. image/jpeg"] = "",
        desc: Annotated[str, "Description"] = "",
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. O0042)"] = "",
    ) -> Annotated[str, "Created media object with handle"]:
        if not path.strip():
            raise ValueError("Media path must not be empty")
        body = _with_optional({"_class": "Media", "path": path}, gramps_id=gramps_id, mime=mime, desc=desc)

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["media"], body), "Media")
        return format_tool_response(
            "success",
            f"Created media: {desc or path}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "path": path,
                "mime_type": mime or None,
                "description": desc or None,
            },
            details=f'Link this media to records by adding "{saved["handle"]}" to their media_list.',
        )

    @kernel_function(
        name="create_repository",
        description="Create a repository (library, archive, website) that holds sources.",
    )
    @tool_errors
    async def create_repository(
        self,
        name: Annotated[str, "Repository name"],
        repository_type: Annotated[str, "Repository type, e.g. Library, Archive, Website"] = "",
        gramps_id: Annotated[str, "Optional Gramps ID (e.g. R0042)"] = "",
    ) -> Annotated[str, "Created repository with handle"]:
        if not name.strip():
            raise ValueError("Repository name must not be empty")
        body = _with_optional(
            {"_class": "Repository", "name": name}, gramps_id=gramps_id, type=repository_type
        )

        saved = extract_saved_entity(
            await self.client.post(ENDPOINTS["repositories"], body), "Repository"
        )
        return format_tool_response(
            "success",
            f"Created repository: {name}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id"),
                "name": name,
                "type": repository_type or None,
            },
            details=f'Link sources to this repository through their reporef_list using "{saved["handle"]}".',
        )

    # =========================================
    # Update
    # =========================================

    @kernel_function(
        name="update_person",
        description=(
            "Update fields of an existing person. primary_name fields are merged; "
            "use 'nickname' to set the call name."
        ),
    )
    @tool_errors
    async def update_person(
        self,
        handle: Annotated[str, "Person handle"],
        changes_json: Annotated[str, "JSON object of fields to change"],
    ) -> Annotated[str, "Updated person"]:
        changes = _parse_changes(changes_json)
        path = entity_endpoint("people", handle)
        person = await self._fetch_record(path)

        for key, value in changes.items():
            if key == "primary_name":
                if not isinstance(value, dict):
                    raise ValueError("primary_name must be a JSON object")
                person["primary_name"] = merge_name(person.get("primary_name"), value)
            elif key == "gender":
                person["gender"] = int(Gender.parse(value))
            else:
                person[key] = value
        person["_class"] = "Person"

        saved = extract_saved_entity(await self.client.put(path, person), "Person")
        return format_tool_response(
            "success",
            f"Updated person: {format_person_name(person.get('primary_name'))}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id") or person.get("gramps_id"),
                "updated_fields": sorted(changes),
            },
        )

    @kernel_function(
        name="update_family",
        description="Update fields of an existing family, e.g. parents or type.",
    )
    @tool_errors
    async def update_family(
        self,
        handle: Annotated[str, "Family handle"],
        changes_json: Annotated[str, "JSON object of fields to change"],
    ) -> Annotated[str, "Updated family"]:
        changes = _parse_changes(changes_json)
        path = entity_endpoint("families", handle)
        family = await self._fetch_record(path)

        for key, value in changes.items():
            if key == "child_ref_list":
                family[key] = _child_ref_list(value)
            else:
                family[key] = value
        family["_class"] = "Family"

        saved = extract_saved_entity(await self.client.put(path, family), "Family")
        return format_tool_response(
            "success",
            f"Updated family: {saved.get('gramps_id') or family.get('gramps_id') or handle}",
            data={
                "handle": saved["handle"],
                "gramps_id": saved.get("gramps_id") or family.get("gramps_id"),
                "updated_fields": sorted(changes),
            },
        )

    @kernel_function(
        name="add_child_to_family",
        description="Add an existing person as a child of an existing family.",
    )
    @tool_errors
    async def add_child_to_family(
        self,
        family_handle: Annotated[str, "Family handle"],
        child_handle: Annotated[str, "Person handle of the child"],
        frel: Annotated[str, "Father relationship: Birth, Adopted, Stepchild, Foster, Unknown"] = "Birth",
        mrel: Annotated[str, "Mother relationship: Birth, Adopted, Stepchild, Foster, Unknown"] = "Birth",
    ) -> Annotated[str, "Family membership result"]:
        new_ref = _child_ref(child_handle, frel, mrel)
        path = entity_endpoint("families", family_handle)
        family = await self._fetch_record(path)
        stored = family.get("child_ref_list")
        # malformed stored entries are dropped
        children = [c for c in stored if isinstance(c, dict)] if isinstance(stored, list) else []

        if any(c.get("ref") == child_handle for c in children):
            return format_tool_response(
                "success",
                f"Child is already in family {family.get('gramps_id')}",
                data={
                    "family_handle": family.get("handle", family_handle),
                    "family_gramps_id": family.get("gramps_id"),
                    "child_handle": child_handle,
                    "children_count": len(children),
                },
                details="No changes were made - child was already a member of this family.",
            )

        family["child_ref_list"] = [{"_class": "ChildRef", **c} for c in children] + [new_ref]
        family["_class"] = "Family"
        saved = extract_saved_entity(await self.client.put(path, family), "Family")
        return format_tool_response(
            "success",
            f"Added child to family {family.get('gramps_id')}",
            data={
                "family_handle": saved["handle"],
                "family_gramps_id": saved.get("gramps_id") or family.get("gramps_id"),
                "child_handle": child_handle,
                "frel": frel,
                "mrel": mrel,
                "children_count": len(children) + 1,
            },
        )

    # =========================================
    # Tags
    # =========================================

    @kernel_function(
        name="list_tags",
        description="List all tags defined in the tree.",
    )
    @tool_errors
    async def list_tags(self) -> Annotated[str, "Tags with handles"]:
        tags = [
            {
                "handle": tag.get("handle"),
                "name": tag.get("name"),
                "color": tag.get("color") or None,
                "priority": tag.get("priority"),
            }
            for tag in _records(await self.client.get(ENDPOINTS["tags"]))
        ]
        if not tags:
            return format_tool_response(
                "empty",
                "No tags found",
                details="Create tags with create_tag to organize your records.",
            )
        return format_tool_response(
            "success",
            f"Found {len(tags)} tag(s)",
            data={"count": len(tags), "tags": tags},
            details="Use tag handles with tag_entity.",
        )

    @kernel_function(
        name="create_tag",
        description="Create a tag such as 'Needs Research' or 'Verified'.",
    )
    @tool_errors
    async def create_tag(
        self,
        name: Annotated[str, "Tag name"],
        color: Annotated[str, "Hex color, e.g. #FF5500"] = "",
        priority: Annotated[int | None, "Priority (lower number = higher priority)"] = None,
    ) -> Annotated[str, "Created tag with handle"]:
        if not name.strip():
            raise ValueError("Tag name must not be empty")
        body = _with_optional({"_class": "Tag", "name": name}, color=color, priority=priority)

        saved = extract_saved_entity(await self.client.post(ENDPOINTS["tags"], body), "Tag")
        return format_tool_response(
            "success",
            f'Created tag "{name}"',
            data={"handle": saved["handle"], "name": name, "color": color or None},
            details=f'Use handle "{saved["handle"]}" to tag records with tag_entity.',
        )

    @kernel_function(
        name="tag_entity",
        description="Add a tag to a record. Safe to call if the tag is already applied.",
    )
    @tool_errors
    async def tag_entity(
        self,
        entity_type: Annotated[str, "Entity type of the record"],
        handle: Annotated[str, "Record handle"],
        tag_handle: Annotated[str, "Handle of the tag to add"],
    ) -> Annotated[str, "Tagging result"]:
        return await self._set_tag(entity_type, handle, tag_handle, present=True)

    @kernel_function(
        name="untag_entity",
        description="Remove a tag from a record. Safe to call if the tag is not applied.",
    )
    @tool_errors
    async def untag_entity(
        self,
        entity_type: Annotated[str, "Entity type of the record"],
        handle: Annotated[str, "Record handle"],
        tag_handle: Annotated[str, "Handle of the tag to remove"],
    ) -> Annotated[str, "Untagging result"]:
        return await self._set_tag(entity_type, handle, tag_handle, present=False)

    async def _set_tag(self, entity_type: str, handle: str, tag_handle: str, present: bool) -> str:
        """Add or remove ``tag_handle`` in a record's tag_list; no PUT when nothing changes."""
        entity_type = normalize_entity_type(entity_type)
        noun = _singular(entity_type)
        path = entity_endpoint(entity_type, handle)
        entity = await self._fetch_record(path)

        stored = entity.get("tag_list")
        tags = [t for t in stored if isinstance(t, str)] if isinstance(stored, list) else []
        data = {
            "entity_type": entity_type,
            "entity_handle": handle,
            "entity_gramps_id": entity.get("gramps_id"),
            "tag_handle": tag_handle,
        }

        if (tag_handle in tags) == present:
            summary = f"Tag already applied to {noun}" if present else f"Tag not found on {noun}"
            return format_tool_response(
                "success",
                summary,
                data={**data, "tag_count": len(tags)},
                details="No changes were made.",
            )

        entity["tag_list"] = (tags + [tag_handle]) if present else [t for t in tags if t != tag_handle]
        await self.client.put(path, entity)
        logger.info("entity_tagged" if present else "entity_untagged", path=path, tag=tag_handle)

        verb = "Tagged" if present else "Removed tag from"
        return format_tool_response(
            "success",
            f"{verb} {noun} {entity.get('gramps_id') or handle}",
            data={**data, "tag_count": len(entity["tag_list"])},
            details=f"{noun.capitalize()} now has {len(entity['tag_list'])} tag(s).",
        )

    # =========================================
    # Delete
    # =========================================

    @kernel_function(
        name="delete",
        description="Permanently delete one record by handle.",
    )
    @tool_errors
    async def delete(
        self,
        entity_type: Annotated[str, "Entity type, including tags"],
        handle: Annotated[str, "Record handle"],
    ) -> Annotated[str, "Deletion result"]:
        entity_type = normalize_entity_type(entity_type, allow_tags=True)
        await self.client.delete(entity_endpoint(entity_type, handle, allow_tags=True))
        logger.info("entity_deleted", entity_type=entity_type, handle=handle)
        return format_tool_response(
            "success",
            f"Deleted {_singular(entity_type)} {handle}",
            data={"entity_type": entity_type, "handle": handle},
            details="References to this record from other records may need cleanup.",
        )

    @kernel_function(
        name="delete_batch",
        description="Delete several records of one type; reports each handle's outcome.",
    )
    @tool_errors
    async def delete_batch(
        self,
        entity_type: Annotated[str, "Entity type of all handles"],
        handles: Annotated[list[str], "Record handles (max 50)"],
    ) -> Annotated[str, "Per-handle deletion results"]:
        entity_type = normalize_entity_type(entity_type, allow_tags=True)
        batch = BatchQuery(handles=handles)

        deleted: list[str] = []
        failed: list[dict[str, str]] = []
        for handle in batch.handles:
            try:
                await self.client.delete(entity_endpoint(entity_type, handle, allow_tags=True))
                deleted.append(handle)
            except GrampsAPIError as e:
                failed.append({"handle": handle, "error": format_error(e)})

        if not deleted:
            status = "error"
        elif failed:
            status = "partial"
        else:
            status = "success"

        return format_tool_response(
            status,
            f"Deleted {len(deleted)} of {len(batch.handles)} {entity_type}",
            data={"deleted": deleted, "failed": failed},
        )
