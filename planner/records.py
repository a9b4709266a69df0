"""Decoding of Notion pages into planner records, and property payloads back.

Notion properties are nested optional structures. Everything here defaults
missing values (numbers to 0, text to "", relations to [], checkboxes to
False) so no None leaks into the records the rest of the app works with.
"""
from dataclasses import dataclass, field
from typing import Any

NAME_SEPARATOR = " - "


@dataclass
class BodyGroup:
    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class Exercise:
    id: str
    name: str
    body_group_ids: list[str] = field(default_factory=list)
    best: float = 0

    @property
    def body_group_id(self) -> str:
        return self.body_group_ids[0] if self.body_group_ids else ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "bodyGroupId": self.body_group_id}


@dataclass
class TemplateExercise:
    exercise_id: str
    exercise_name: str
    default_sets: float = 0
    default_reps: float = 0
    order: float = 0
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "exerciseId": self.exercise_id,
            "exerciseName": self.exercise_name,
            "defaultSets": self.default_sets,
            "defaultReps": self.default_reps,
            "order": self.order,
        }


@dataclass
class WorkoutTemplate:
    id: str
    name: str
    body_group_ids: list[str] = field(default_factory=list)
    exercises: list[TemplateExercise] = field(default_factory=list)
    estimated_minutes: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "exercises": [ex.to_dict() for ex in self.exercises],
            "bodyGroups": list(self.body_group_ids),
            "estimatedTime": self.estimated_minutes,
        }


@dataclass
class WorkoutEntry:
    id: str
    name: str
    date: str
    sets: float = 0
    reps: float = 0
    max_weight: float = 0
    completed: bool = False
    exercise_ids: list[str] = field(default_factory=list)
    template_id: str = ""

    @property
    def exercise_id(self) -> str:
        return self.exercise_ids[0] if self.exercise_ids else ""

    @property
    def exercise_name(self) -> str:
        return split_composite_name(self.name)[1]

    @property
    def template_name(self) -> str:
        return split_composite_name(self.name)[0]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "date": self.date,
            "sets": self.sets,
            "reps": self.reps,
            "maxWeight": self.max_weight,
            "completed": self.completed,
            "exerciseIds": list(self.exercise_ids),
            "exerciseId": self.exercise_id,
            "exerciseName": self.exercise_name,
        }
        if self.template_id:
            out["templateId"] = self.template_id
        return out


@dataclass
class DailySummary:
    id: str
    name: str
    date: str
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "date": self.date, "completed": self.completed}


def composite_name(template_name: str, exercise_name: str) -> str:
    return f"{template_name}{NAME_SEPARATOR}{exercise_name}"


def split_composite_name(name: str) -> tuple[str, str]:
    """Split ``"{template} - {exercise}"`` back into its parts.

    Everything after the first separator is the exercise name. A name without
    the separator is treated as a bare exercise name.
    """
    parts = name.split(NAME_SEPARATOR)
    if len(parts) < 2:
        return "", name
    return parts[0], NAME_SEPARATOR.join(parts[1:])


# ---- property readers ----


def _prop(page: dict[str, Any], name: str) -> dict[str, Any]:
    props = page.get("properties") or {}
    value = props.get(name) or {}
    return value if isinstance(value, dict) else {}


def title_of(page: dict[str, Any], name: str = "Name") -> str:
    prop = _prop(page, name)
    chunks = prop.get("title") or prop.get("rich_text") or []
    return "".join(str(c.get("plain_text") or (c.get("text") or {}).get("content") or "") for c in chunks)


def number_of(page: dict[str, Any], name: str) -> float:
    value = _prop(page, name).get("number")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def checkbox_of(page: dict[str, Any], name: str) -> bool:
    return _prop(page, name).get("checkbox") is True


def relation_ids(page: dict[str, Any], name: str) -> list[str]:
    rels = _prop(page, name).get("relation") or []
    return [str(r["id"]) for r in rels if isinstance(r, dict) and r.get("id")]


def date_of(page: dict[str, Any], name: str = "Date") -> str:
    start = (_prop(page, name).get("date") or {}).get("start") or ""
    return str(start)[:10]


# ---- decoders, one per collection ----


def decode_body_group(page: dict[str, Any]) -> BodyGroup:
    return BodyGroup(id=str(page.get("id", "")), name=title_of(page))


def decode_exercise(page: dict[str, Any]) -> Exercise:
    return Exercise(
        id=str(page.get("id", "")),
        name=title_of(page),
        body_group_ids=relation_ids(page, "Body Group"),
        best=number_of(page, "Best"),
    )


def decode_template(page: dict[str, Any]) -> WorkoutTemplate:
    return WorkoutTemplate(
        id=str(page.get("id", "")),
        name=title_of(page),
        body_group_ids=relation_ids(page, "Body Groups"),
        estimated_minutes=number_of(page, "Estimated Time"),
    )


def decode_template_exercise(page: dict[str, Any], exercise_names: dict[str, str] | None = None) -> TemplateExercise:
    exercise_ids = relation_ids(page, "Exercise")
    exercise_id = exercise_ids[0] if exercise_ids else ""
    name = (exercise_names or {}).get(exercise_id) or title_of(page)
    return TemplateExercise(
        id=str(page.get("id", "")),
        exercise_id=exercise_id,
        exercise_name=name,
        default_sets=number_of(page, "Default Sets"),
        default_reps=number_of(page, "Default Reps"),
        order=number_of(page, "Order"),
    )


def template_id_of(page: dict[str, Any]) -> str:
    ids = relation_ids(page, "Template")
    return ids[0] if ids else ""


def decode_entry(page: dict[str, Any]) -> WorkoutEntry:
    template_ids = relation_ids(page, "Workout Template")
    return WorkoutEntry(
        id=str(page.get("id", "")),
        name=title_of(page),
        date=date_of(page),
        sets=number_of(page, "Total Sets"),
        reps=number_of(page, "Total Reps"),
        max_weight=number_of(page, "Max Weight"),
        completed=checkbox_of(page, "Completed"),
        exercise_ids=relation_ids(page, "Exercises"),
        template_id=template_ids[0] if template_ids else "",
    )


def decode_summary(page: dict[str, Any]) -> DailySummary:
    return DailySummary(
        id=str(page.get("id", "")),
        name=title_of(page),
        date=date_of(page),
        completed=checkbox_of(page, "Completed"),
    )


# ---- property payloads ----


def title_prop(text: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def number_prop(value: float) -> dict[str, Any]:
    return {"number": value}


def checkbox_prop(value: bool) -> dict[str, Any]:
    return {"checkbox": bool(value)}


def date_prop(start: str, end: str | None = None) -> dict[str, Any]:
    value: dict[str, Any] = {"start": start}
    if end:
        value["end"] = end
    return {"date": value}


def relation_prop(*ids: str) -> dict[str, Any]:
    return {"relation": [{"id": i} for i in ids if i]}


def entry_properties(
    template_name: str,
    exercise_name: str,
    date: str,
    exercise_id: str,
    sets: float = 0,
    reps: float = 0,
    max_weight: float = 0,
    template_id: str = "",
    template_exercise_id: str = "",
) -> dict[str, Any]:
    props: dict[str, Any] = {
        "Name": title_prop(composite_name(template_name, exercise_name)),
        "Date": date_prop(date),
        "Exercises": relation_prop(exercise_id),
        "Total Sets": number_prop(sets or 0),
        "Total Reps": number_prop(reps or 0),
        "Max Weight": number_prop(max_weight or 0),
        "Completed": checkbox_prop(False),
    }
    if template_id:
        props["Workout Template"] = relation_prop(template_id)
    if template_exercise_id:
        props["Template Exercise"] = relation_prop(template_exercise_id)
    return props


ENTRY_FIELDS = {
    "totalSets": "Total Sets",
    "totalReps": "Total Reps",
    "maxWeight": "Max Weight",
}


def entry_patch(fields: dict[str, Any]) -> dict[str, Any]:
    """Build a partial patch from only the keys present in ``fields``."""
    patch: dict[str, Any] = {}
    for key, prop in ENTRY_FIELDS.items():
        if key in fields:
            patch[prop] = number_prop(fields[key])
    if "completed" in fields:
        patch["Completed"] = checkbox_prop(fields["completed"])
    return patch
