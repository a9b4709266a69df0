import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .config import Settings
from .errors import NotFoundError, PlannerError, ValidationError
from .notion import NotionClient, and_, date_between, date_equals, relation_contains, sort_by
from .records import (
    BodyGroup,
    DailySummary,
    Exercise,
    WorkoutEntry,
    checkbox_prop,
    date_prop,
    decode_body_group,
    decode_entry,
    decode_exercise,
    decode_summary,
    entry_patch,
    entry_properties,
    number_prop,
    title_of,
    title_prop,
)

log = logging.getLogger(__name__)


def _compact_id(value: str) -> str:
    return value.replace("-", "").lower()


@dataclass
class NewEntry:
    template_name: str
    exercise_name: str
    exercise_id: str
    date: str
    sets: float = 0
    reps: float = 0
    max_weight: float = 0
    template_id: str = ""
    template_exercise_id: str = ""


@dataclass
class BatchResult:
    succeeded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.succeeded)


class WorkoutStore:
    """Queries and property patches against the workout collections."""

    def __init__(self, client: NotionClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    # ---- body groups / exercises ----

    def list_body_groups(self) -> list[BodyGroup]:
        pages = self.client.query_database(self.settings.database("body_groups_db"))
        return [decode_body_group(p) for p in pages]

    def get_body_group_name(self, body_group_id: str) -> str:
        return title_of(self.client.retrieve_page(body_group_id))

    def list_exercises(self) -> list[Exercise]:
        pages = self.client.query_database(self.settings.database("exercises_db"))
        return [decode_exercise(p) for p in pages]

    def exercises_by_body_groups(self, body_group_ids: list[str]) -> list[dict[str, Any]]:
        wanted = set(body_group_ids)
        names: dict[str, str] = {}
        for bg_id in body_group_ids:
            try:
                names[bg_id] = self.get_body_group_name(bg_id)
            except PlannerError as err:
                log.warning("Failed to fetch body group %s: %s", bg_id, err.message)

        out: list[dict[str, Any]] = []
        for ex in self.list_exercises():
            if ex.body_group_id not in wanted:
                continue
            out.append(
                {
                    "id": ex.id,
                    "name": ex.name,
                    "bodyGroupIds": list(ex.body_group_ids),
                    "bodyGroupName": names.get(ex.body_group_id, ""),
                    "best": ex.best,
                }
            )
        return out

    def find_exercise_by_name(self, name: str) -> Exercise | None:
        target = name.strip().lower()
        if not target:
            return None
        return next((ex for ex in self.list_exercises() if ex.name.strip().lower() == target), None)

    def get_exercise(self, exercise_id: str) -> Exercise:
        return decode_exercise(self.client.retrieve_page(exercise_id))

    def get_best(self, exercise_id: str) -> float:
        return self.get_exercise(exercise_id).best

    def get_bests(self, exercise_ids: list[str]) -> dict[str, float]:
        bests: dict[str, float] = {}
        for exercise_id in exercise_ids:
            try:
                bests[exercise_id] = self.get_best(exercise_id)
            except PlannerError as err:
                log.warning("Failed to fetch best for exercise %s: %s", exercise_id, err.message)
                bests[exercise_id] = 0
        return bests

    def set_best(self, exercise_id: str, value: float) -> None:
        self.client.update_page(exercise_id, {"Best": number_prop(value)})

    # ---- scheduled entries ----

    def list_entries(self, start: str | None = None, end: str | None = None) -> list[WorkoutEntry]:
        pages = self.client.query_database(
            self.settings.database("weekly_workout_db"),
            filter=date_between("Date", start, end) if start and end else None,
            sorts=sort_by("Date", "descending"),
        )
        return [decode_entry(p) for p in pages]

    def entries_on(self, date: str) -> list[WorkoutEntry]:
        pages = self.client.query_database(
            self.settings.database("weekly_workout_db"),
            filter=date_equals("Date", date),
        )
        return [decode_entry(p) for p in pages]

    def get_entry(self, page_id: str) -> WorkoutEntry:
        return decode_entry(self.client.retrieve_page(page_id))

    def create_entry(self, new: NewEntry) -> str:
        props = entry_properties(
            new.template_name,
            new.exercise_name,
            new.date,
            new.exercise_id,
            sets=new.sets,
            reps=new.reps,
            max_weight=new.max_weight,
            template_id=new.template_id,
            template_exercise_id=new.template_exercise_id,
        )
        page = self.client.create_page(self.settings.database("weekly_workout_db"), props)
        return str(page.get("id", ""))

    def update_entry(self, page_id: str, fields: dict[str, Any]) -> None:
        patch = entry_patch(fields)
        if not patch:
            raise ValidationError("At least one of totalSets, totalReps, maxWeight or completed is required.")
        self.client.update_page(page_id, patch)

    def archive_entry(self, page_id: str) -> None:
        page = self.client.retrieve_page(page_id)
        parent = str((page.get("parent") or {}).get("database_id") or "")
        if _compact_id(parent) != _compact_id(self.settings.database("weekly_workout_db")):
            raise NotFoundError(f"Workout entry {page_id} not found.")
        self.client.archive_page(page_id)

    def archive_entries_for(self, date: str, exercise_id: str) -> BatchResult:
        pages = self.client.query_database(
            self.settings.database("weekly_workout_db"),
            filter=and_(date_equals("Date", date), relation_contains("Exercises", exercise_id)),
        )
        return self.archive_pages([str(p.get("id")) for p in pages])

    def find_template_exercise(self, template_id: str, exercise_id: str) -> str:
        if not self.settings.template_exercises_db:
            return ""
        pages = self.client.query_database(
            self.settings.template_exercises_db,
            filter=and_(relation_contains("Template", template_id), relation_contains("Exercise", exercise_id)),
        )
        return str(pages[0].get("id", "")) if pages else ""

    # ---- daily summaries ----

    def list_summaries(self, start: str | None = None, end: str | None = None) -> list[DailySummary]:
        pages = self.client.query_database(
            self.settings.database("daily_workouts_db"),
            filter=date_between("Date", start, end) if start and end else None,
            sorts=sort_by("Date", "ascending"),
        )
        return [decode_summary(p) for p in pages]

    def summary_on(self, date: str) -> DailySummary | None:
        pages = self.client.query_database(
            self.settings.database("daily_workouts_db"),
            filter=date_equals("Date", date),
        )
        return decode_summary(pages[0]) if pages else None

    def create_summary(self, name: str, date: str, start: str | None = None, end: str | None = None) -> str:
        props = {
            "Name": title_prop(name),
            "Date": date_prop(start or date, end),
            "Completed": checkbox_prop(False),
        }
        page = self.client.create_page(self.settings.database("daily_workouts_db"), props)
        return str(page.get("id", ""))

    def set_summary_date(self, summary_id: str, start: str, end: str | None = None) -> None:
        self.client.update_page(summary_id, {"Date": date_prop(start, end)})

    def set_summary_completed(self, date: str, completed: bool) -> str:
        summary = self.summary_on(date)
        if summary is None:
            raise NotFoundError("Daily workout entry not found for this date")
        self.client.update_page(summary.id, {"Completed": checkbox_prop(completed)})
        return summary.id

    # ---- batch mutations ----

    def _batch(self, keys: list[str], action: Callable[[str], str | None]) -> BatchResult:
        result = BatchResult()
        for key in keys:
            try:
                out = action(key)
            except PlannerError as err:
                log.warning("Batch item %s failed: %s", key, err.message)
                result.failed.append((key, err.message))
                continue
            result.succeeded.append(out or key)
        return result

    def create_entries(self, entries: list[NewEntry]) -> BatchResult:
        by_key = {str(i): entry for i, entry in enumerate(entries)}
        return self._batch(list(by_key), lambda key: self.create_entry(by_key[key]))

    def set_entry_dates(self, page_ids: list[str], date: str) -> BatchResult:
        def move(page_id: str) -> None:
            self.client.update_page(page_id, {"Date": date_prop(date)})

        return self._batch(page_ids, move)

    def archive_pages(self, page_ids: list[str]) -> BatchResult:
        def archive(page_id: str) -> None:
            self.client.archive_page(page_id)

        return self._batch(page_ids, archive)
