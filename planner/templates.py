import copy
import logging
import threading
from typing import Any, Protocol
from uuid import uuid4

from .config import Settings
from .errors import NotFoundError, ValidationError
from .notion import NotionClient, relation_contains, sort_by
from .records import (
    TemplateExercise,
    WorkoutTemplate,
    decode_template,
    decode_template_exercise,
    number_prop,
    relation_prop,
    template_id_of,
    title_of,
    title_prop,
)

log = logging.getLogger(__name__)


class TemplateRepository(Protocol):
    def list_templates(self) -> list[WorkoutTemplate]: ...

    def get_template(self, template_id: str) -> WorkoutTemplate: ...

    def body_group_ids(self, template_id: str) -> list[str]: ...

    def create_template(
        self,
        name: str,
        body_group_ids: list[str],
        exercises: list[TemplateExercise],
        estimated_minutes: float = 0,
    ) -> WorkoutTemplate: ...

    def delete_template(self, template_id: str) -> None: ...


def _seed(*rows: tuple[str, float, float]) -> list[TemplateExercise]:
    return [
        TemplateExercise(exercise_id="", exercise_name=name, default_sets=sets, default_reps=reps, order=i + 1)
        for i, (name, sets, reps) in enumerate(rows)
    ]


def default_templates() -> list[WorkoutTemplate]:
    return [
        WorkoutTemplate("1", "Chest & Triceps", exercises=_seed(
            ("Bench Press", 3, 10), ("Push-ups", 3, 15), ("Tricep Dips", 3, 12), ("Skull Crushers", 3, 10))),
        WorkoutTemplate("2", "Back & Biceps", exercises=_seed(
            ("Pull-ups", 3, 10), ("Rows", 3, 12), ("Bicep Curls", 3, 12), ("Hammer Curls", 3, 12))),
        WorkoutTemplate("3", "Back", exercises=_seed(("Pull-ups", 3, 10), ("Rows", 3, 12))),
        WorkoutTemplate("4", "Biceps", exercises=_seed(("Bicep Curls", 3, 12), ("Hammer Curls", 3, 12))),
        WorkoutTemplate("5", "Shoulders", exercises=_seed(("Shoulder Press", 3, 10), ("Lateral Raises", 3, 12))),
        WorkoutTemplate("6", "Legs", exercises=_seed(("Squats", 4, 10), ("Lunges", 3, 12))),
        WorkoutTemplate("7", "Shoulders & Legs", exercises=_seed(
            ("Shoulder Press", 3, 10), ("Lateral Raises", 3, 12), ("Squats", 4, 10), ("Lunges", 3, 12))),
        WorkoutTemplate("8", "Shoulders & Triceps", exercises=_seed(
            ("Shoulder Press", 3, 10), ("Lateral Raises", 3, 12), ("Tricep Dips", 3, 12), ("Skull Crushers", 3, 10))),
        WorkoutTemplate("9", "Core", exercises=_seed(("Planks", 3, 60), ("Crunches", 3, 20))),
        WorkoutTemplate("10", "Climbing", exercises=_seed(("Bouldering", 1, 1))),
        WorkoutTemplate("11", "Full Body", exercises=_seed(
            ("Squats", 4, 10), ("Bench Press", 3, 10), ("Pull-ups", 3, 10),
            ("Shoulder Press", 3, 10), ("Rows", 3, 12), ("Planks", 3, 60))),
    ]


class StaticTemplateRepository:
    """In-process template list. All access goes through ``_lock``."""

    def __init__(self, templates: list[WorkoutTemplate] | None = None) -> None:
        self._templates = default_templates() if templates is None else list(templates)
        self._lock = threading.Lock()

    def list_templates(self) -> list[WorkoutTemplate]:
        with self._lock:
            return copy.deepcopy(self._templates)

    def get_template(self, template_id: str) -> WorkoutTemplate:
        with self._lock:
            found = next((t for t in self._templates if t.id == template_id), None)
            if found is None:
                raise NotFoundError(f"Template {template_id} not found.")
            return copy.deepcopy(found)

    def body_group_ids(self, template_id: str) -> list[str]:
        return self.get_template(template_id).body_group_ids

    def create_template(
        self,
        name: str,
        body_group_ids: list[str],
        exercises: list[TemplateExercise],
        estimated_minutes: float = 0,
    ) -> WorkoutTemplate:
        template = WorkoutTemplate(
            id=str(uuid4()),
            name=name,
            body_group_ids=list(body_group_ids),
            exercises=list(exercises),
            estimated_minutes=estimated_minutes,
        )
        with self._lock:
            self._templates.append(template)
        return copy.deepcopy(template)

    def delete_template(self, template_id: str) -> None:
        with self._lock:
            kept = [t for t in self._templates if t.id != template_id]
            if len(kept) == len(self._templates):
                raise NotFoundError(f"Template {template_id} not found.")
            self._templates = kept


def _ordered(exercises: list[TemplateExercise]) -> list[TemplateExercise]:
    return sorted(exercises, key=lambda ex: (ex.order, ex.id))


class NotionTemplateRepository:
    """Templates stored in Notion, with exercises in a child collection.

    Child records point at their template through the ``Template`` relation
    and are ordered by ``Order``; ties fall back to the record id.
    """

    def __init__(self, client: NotionClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def _exercise_names(self) -> dict[str, str]:
        pages = self.client.query_database(self.settings.database("exercises_db"))
        return {str(p.get("id")): title_of(p) for p in pages}

    def list_templates(self) -> list[WorkoutTemplate]:
        pages = self.client.query_database(self.settings.database("templates_db"), sorts=sort_by("Name"))
        children = self.client.query_database(
            self.settings.database("template_exercises_db"), sorts=sort_by("Order")
        )
        names = self._exercise_names()

        by_template: dict[str, list[TemplateExercise]] = {}
        for child in children:
            template_id = template_id_of(child)
            ex = decode_template_exercise(child, names)
            if template_id and ex.exercise_id:
                by_template.setdefault(template_id, []).append(ex)

        templates: list[WorkoutTemplate] = []
        for page in pages:
            template = decode_template(page)
            template.exercises = _ordered(by_template.get(template.id, []))
            templates.append(template)
        return templates

    def get_template(self, template_id: str) -> WorkoutTemplate:
        page = self.client.retrieve_page(template_id)
        if page.get("archived"):
            raise NotFoundError(f"Template {template_id} not found.")
        template = decode_template(page)
        children = self.client.query_database(
            self.settings.database("template_exercises_db"),
            filter=relation_contains("Template", template_id),
            sorts=sort_by("Order"),
        )
        names = self._exercise_names()
        template.exercises = _ordered([decode_template_exercise(c, names) for c in children])
        return template

    def body_group_ids(self, template_id: str) -> list[str]:
        return decode_template(self.client.retrieve_page(template_id)).body_group_ids

    def create_template(
        self,
        name: str,
        body_group_ids: list[str],
        exercises: list[TemplateExercise],
        estimated_minutes: float = 0,
    ) -> WorkoutTemplate:
        missing = next((ex for ex in exercises if not ex.exercise_id), None)
        if missing is not None:
            raise ValidationError(f"Exercise {missing.exercise_name or '(unnamed)'} has no exerciseId.")
        props: dict[str, Any] = {
            "Name": title_prop(name),
            "Body Groups": relation_prop(*body_group_ids),
            "Estimated Time": number_prop(estimated_minutes),
        }
        page = self.client.create_page(self.settings.database("templates_db"), props)
        template = decode_template(page)
        template.name = template.name or name

        children_db = self.settings.database("template_exercises_db")
        for i, ex in enumerate(exercises):
            child = self.client.create_page(
                children_db,
                {
                    "Name": title_prop(ex.exercise_name),
                    "Template": relation_prop(template.id),
                    "Exercise": relation_prop(ex.exercise_id),
                    "Default Sets": number_prop(ex.default_sets),
                    "Default Reps": number_prop(ex.default_reps),
                    "Order": number_prop(i + 1),
                },
            )
            template.exercises.append(
                TemplateExercise(
                    id=str(child.get("id", "")),
                    exercise_id=ex.exercise_id,
                    exercise_name=ex.exercise_name,
                    default_sets=ex.default_sets,
                    default_reps=ex.default_reps,
                    order=i + 1,
                )
            )
        return template

    def delete_template(self, template_id: str) -> None:
        children = self.client.query_database(
            self.settings.database("template_exercises_db"),
            filter=relation_contains("Template", template_id),
        )
        self.client.archive_page(template_id)
        for child in children:
            self.client.archive_page(str(child.get("id")))


def build_template_repository(client: NotionClient, settings: Settings) -> TemplateRepository:
    if settings.template_source == "notion":
        log.info("Using Notion-backed workout templates")
        return NotionTemplateRepository(client, settings)
    log.info("Using built-in workout templates")
    return StaticTemplateRepository()
