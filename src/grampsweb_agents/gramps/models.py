"""Gramps Web data models.

These mirror the JSON objects returned by the Gramps Web REST API. Unknown
fields are preserved (``extra="allow"``) so a fetched record can be written
back with PUT without dropping data the models do not describe.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Gender(IntEnum):
    """Gramps gender codes."""
    FEMALE = 0
    MALE = 1
    UNKNOWN = 2

    @classmethod
    def parse(cls, value: str | int | None) -> Gender:
        if isinstance(value, int):
            return cls(value) if value in (0, 1, 2) else cls.UNKNOWN
        return {"male": cls.MALE, "m": cls.MALE, "female": cls.FEMALE, "f": cls.FEMALE}.get(
            (value or "").strip().lower(), cls.UNKNOWN
        )


CHILD_RELATIONS = ("Birth", "Adopted", "Stepchild", "Foster", "Unknown")


class GrampsObject(BaseModel):
    """Base for every Gramps JSON object, entity or nested structure."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    class_name: str | None = Field(default=None, alias="_class")


class DateObject(GrampsObject):
    """Gramps date; ``dateval`` is (day, month, year, slash)."""
    calendar: int | None = None
    modifier: int | None = None
    quality: int | None = None
    dateval: list[Any] = Field(default_factory=list)
    text: str | None = None
    sortval: int | None = None
    newyear: int | None = None


class Surname(GrampsObject):
    surname: str | None = None
    prefix: str | None = None
    primary: bool | None = None
    origintype: str | None = None
    connector: str | None = None


class Name(GrampsObject):
    """Person name with components."""
    first_name: str | None = None
    call_name: str | None = None
    nickname: str | None = None
    surname: str | None = None
    surname_list: list[Surname] = Field(default_factory=list)
    suffix: str | None = None
    title: str | None = None
    type: str | None = None
    primary: bool | None = None


class EventRef(GrampsObject):
    ref: str | None = None
    role: str | None = None


class ChildRef(GrampsObject):
    """Reference from a family to one of its children."""
    ref: str | None = None
    frel: str | None = None
    mrel: str | None = None


class GrampsEntity(GrampsObject):
    """Top-level record with an immutable handle and editable Gramps ID."""
    handle: str = ""
    gramps_id: str = ""
    change: int | None = None
    private: bool | None = None


class Person(GrampsEntity):
    """Individual in the family tree."""
    primary_name: Name | None = None
    alternate_names: list[Name] = Field(default_factory=list)
    gender: int | None = None
    event_ref_list: list[EventRef] = Field(default_factory=list)
    # Families in which this person is a parent
    family_list: list[str] = Field(default_factory=list)
    # Families in which this person is a child
    parent_family_list: list[str] = Field(default_factory=list)
    citation_list: list[str] = Field(default_factory=list)
    note_list: list[str] = Field(default_factory=list)
    tag_list: list[str] = Field(default_factory=list)


class Family(GrampsEntity):
    """Family unit linking up to two parents and any number of children."""
    father_handle: str | None = None
    mother_handle: str | None = None
    child_ref_list: list[ChildRef] = Field(default_factory=list)
    type: str | None = None
    event_ref_list: list[EventRef] = Field(default_factory=list)
    citation_list: list[str] = Field(default_factory=list)
    note_list: list[str] = Field(default_factory=list)
    tag_list: list[str] = Field(default_factory=list)

    @property
    def child_handles(self) -> list[str]:
        return [c.ref for c in self.child_ref_list if c.ref]


class Event(GrampsEntity):
    """Life event."""
    type: str | None = None
    date: DateObject | None = None
    place: str | None = None
    description: str | None = None


class Note(GrampsEntity):
    text: dict[str, Any] | str | None = None
    type: str | None = None
