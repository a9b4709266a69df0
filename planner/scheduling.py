import logging
import threading
from dataclasses import dataclass, field
from datetime import date as Date, datetime, timedelta
from enum import Enum
from typing import Any

from .config import Settings
from .errors import NotFoundError, PlannerError, UpstreamError, ValidationError
from .records import DailySummary, Exercise, TemplateExercise, WorkoutEntry, WorkoutTemplate
from .store import NewEntry, WorkoutStore
from .templates import TemplateRepository

log = logging.getLogger(__name__)

MAX_STATUS_DAYS = 366
BEST_LOCK_SLOTS = 16


class DayStatus(str, Enum):
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def day_status(summary: DailySummary | None, entries: list[WorkoutEntry]) -> DayStatus:
    if summary is not None and summary.completed:
        return DayStatus.COMPLETED
    if summary is None and not entries:
        return DayStatus.UNSCHEDULED
    if any(e.completed for e in entries):
        return DayStatus.IN_PROGRESS
    return DayStatus.SCHEDULED


@dataclass
class InstantiateResult:
    template: WorkoutTemplate
    workouts: list[dict[str, Any]] = field(default_factory=list)
    daily_workout_id: str = ""
    summary_created: bool = False
    skipped: list[str] = field(default_factory=list)
    failed: int = 0


@dataclass
class PersonalBestResult:
    exercise_id: str
    best: float
    previous: float
    new_best: bool


@dataclass
class MoveResult:
    moved: int = 0
    failed: int = 0


@dataclass
class FinishResult:
    updated: int = 0
    failed: list[str] = field(default_factory=list)
    personal_bests: list[dict[str, Any]] = field(default_factory=list)
    daily_completed: bool = False


def summary_window(day: str, estimated_minutes: float, start_time: str) -> tuple[str, str | None]:
    """Start/end for a daily summary: a timed window when the duration is known."""
    if not estimated_minutes or estimated_minutes <= 0:
        return day, None
    try:
        start = datetime.fromisoformat(f"{day}T{start_time}")
    except ValueError:
        log.warning("Invalid WORKOUT_START_TIME %r, using a bare date", start_time)
        return day, None
    end = start + timedelta(minutes=estimated_minutes)
    return start.isoformat(timespec="seconds"), end.isoformat(timespec="seconds")


class Scheduler:
    """Multi-step workflows spanning scheduled entries and daily summaries.

    Nothing here is atomic. Each record is written with its own store call and
    earlier writes stay in place when a later one fails.
    """

    def __init__(self, store: WorkoutStore, templates: TemplateRepository, settings: Settings) -> None:
        self.store = store
        self.templates = templates
        self.settings = settings
        self._best_locks = tuple(threading.Lock() for _ in range(BEST_LOCK_SLOTS))

    @property
    def links_templates(self) -> bool:
        return self.settings.template_source == "notion"

    def _resolve(self, exercises: list[TemplateExercise]) -> tuple[list[TemplateExercise], list[str]]:
        catalog: list[Exercise] | None = None
        resolved: list[TemplateExercise] = []
        skipped: list[str] = []
        for ex in exercises:
            if ex.exercise_id and ex.exercise_name:
                resolved.append(ex)
                continue
            if catalog is None:
                catalog = self.store.list_exercises()
            if ex.exercise_id:
                match = next((c for c in catalog if c.id == ex.exercise_id), None)
            else:
                target = ex.exercise_name.strip().lower()
                match = next((c for c in catalog if target and c.name.strip().lower() == target), None)
            if match is None:
                label = ex.exercise_name or ex.exercise_id or "(unnamed)"
                log.warning("Exercise not found: %s", label)
                skipped.append(label)
                continue
            resolved.append(
                TemplateExercise(
                    id=ex.id,
                    exercise_id=match.id,
                    exercise_name=ex.exercise_name or match.name,
                    default_sets=ex.default_sets,
                    default_reps=ex.default_reps,
                    order=ex.order,
                )
            )
        return resolved, skipped

    def _ensure_summary(self, day: str, template: WorkoutTemplate) -> tuple[str, bool]:
        existing = self.store.summary_on(day)
        if existing is not None:
            return existing.id, False
        start, end = summary_window(day, template.estimated_minutes, self.settings.workout_start_time)
        return self.store.create_summary(template.name or "Workout", day, start, end), True

    def instantiate(
        self,
        day: str,
        template_id: str,
        custom_exercises: list[TemplateExercise] | None = None,
    ) -> InstantiateResult:
        template = self.templates.get_template(template_id)
        planned = custom_exercises if custom_exercises is not None else template.exercises
        exercises, skipped = self._resolve(planned)

        summary_id, created = self._ensure_summary(day, template)
        new_entries = [
            NewEntry(
                template_name=template.name,
                exercise_name=ex.exercise_name,
                exercise_id=ex.exercise_id,
                date=day,
                sets=ex.default_sets,
                reps=ex.default_reps,
                max_weight=0,
                template_id=template.id if self.links_templates else "",
                template_exercise_id=ex.id if self.links_templates else "",
            )
            for ex in exercises
        ]
        batch = self.store.create_entries(new_entries)
        if batch.failed and not batch.succeeded:
            raise UpstreamError(f"Failed to create workout entries for {template.name}.")

        result = InstantiateResult(
            template=template,
            daily_workout_id=summary_id,
            summary_created=created,
            skipped=skipped,
            failed=len(batch.failed),
        )
        failed_keys = {key for key, _ in batch.failed}
        created_ids = iter(batch.succeeded)
        for i, entry in enumerate(new_entries):
            if str(i) in failed_keys:
                continue
            result.workouts.append(
                {
                    "id": next(created_ids),
                    "name": entry.exercise_name,
                    "exerciseId": entry.exercise_id,
                    "sets": entry.sets,
                    "reps": entry.reps,
                    "maxWeight": 0,
                }
            )
        return result

    def create_single(
        self,
        template_id: str,
        exercise_id: str,
        exercise_name: str,
        day: str,
        sets: float = 0,
        reps: float = 0,
        max_weight: float = 0,
    ) -> str:
        template = self.templates.get_template(template_id)
        template_exercise_id = ""
        if self.links_templates:
            template_exercise_id = self.store.find_template_exercise(template_id, exercise_id)
        self._ensure_summary(day, template)
        return self.store.create_entry(
            NewEntry(
                template_name=template.name or "Workout",
                exercise_name=exercise_name,
                exercise_id=exercise_id,
                date=day,
                sets=sets,
                reps=reps,
                max_weight=max_weight,
                template_id=template_id if self.links_templates else "",
                template_exercise_id=template_exercise_id,
            )
        )

    def _best_lock(self, exercise_id: str) -> threading.Lock:
        # Fixed pool: an exercise id always maps to the same slot.
        return self._best_locks[hash(exercise_id) % BEST_LOCK_SLOTS]

    def record_personal_best(self, exercise_id: str, max_weight: float) -> PersonalBestResult:
        with self._best_lock(exercise_id):
            current = self.store.get_best(exercise_id)
            if max_weight > current:
                self.store.set_best(exercise_id, max_weight)
                log.info("New personal best for %s: %s (was %s)", exercise_id, max_weight, current)
                return PersonalBestResult(exercise_id, max_weight, current, True)
            return PersonalBestResult(exercise_id, current, current, False)

    def _estimated_minutes(self, entries: list[WorkoutEntry]) -> float:
        if not entries:
            return 0
        first = entries[0]
        try:
            if first.template_id:
                return self.templates.get_template(first.template_id).estimated_minutes
            name = first.template_name
            match = next((t for t in self.templates.list_templates() if name and t.name == name), None)
            return match.estimated_minutes if match else 0
        except PlannerError as err:
            log.warning("Could not resolve template for %s: %s", first.id, err.message)
            return 0

    def _repoint_summary(self, summary: DailySummary, day: str, entries: list[WorkoutEntry]) -> bool:
        start, end = summary_window(day, self._estimated_minutes(entries), self.settings.workout_start_time)
        try:
            self.store.set_summary_date(summary.id, start, end)
        except PlannerError as err:
            log.warning("Failed to move daily workout %s to %s: %s", summary.id, day, err.message)
            return False
        return True

    def move(self, from_date: str, to_date: str, is_swap: bool = False) -> MoveResult:
        if from_date == to_date:
            raise ValidationError("fromDate and toDate must differ.")

        from_entries = self.store.entries_on(from_date)
        from_summary = self.store.summary_on(from_date)
        to_entries = self.store.entries_on(to_date)
        to_summary = self.store.summary_on(to_date)
        log.info("Moving %d workout entries from %s to %s (swap=%s)", len(from_entries), from_date, to_date, is_swap)

        result = MoveResult()
        forward = self.store.set_entry_dates([e.id for e in from_entries], to_date)
        result.moved += forward.count
        result.failed += len(forward.failed)

        if is_swap:
            backward = self.store.set_entry_dates([e.id for e in to_entries], from_date)
            result.moved += backward.count
            result.failed += len(backward.failed)
            if from_summary is not None:
                self._repoint_summary(from_summary, to_date, from_entries)
            if to_summary is not None:
                self._repoint_summary(to_summary, from_date, to_entries)
            return result

        if from_summary is not None:
            if to_summary is None:
                self._repoint_summary(from_summary, to_date, from_entries)
            else:
                self.store.archive_pages([from_summary.id])
        return result

    def clear_day(self, day: str) -> int:
        entries = self.store.entries_on(day)
        batch = self.store.archive_pages([e.id for e in entries])
        summary = self.store.summary_on(day)
        if summary is not None:
            self.store.archive_pages([summary.id])
        return batch.count

    def finish(self, day: str, results: list[dict[str, Any]]) -> FinishResult:
        entries = {e.id: e for e in self.store.entries_on(day)}
        out = FinishResult()
        for row in results:
            page_id = str(row.get("pageId") or "")
            fields = {k: row[k] for k in ("totalSets", "totalReps", "maxWeight") if row.get(k) is not None}
            fields["completed"] = True
            try:
                self.store.update_entry(page_id, fields)
            except PlannerError as err:
                log.error("Failed to save %s: %s", page_id, err.message)
                out.failed.append(page_id)
                continue
            out.updated += 1

            entry = entries.get(page_id)
            exercise_id = str(row.get("exerciseId") or (entry.exercise_id if entry else ""))
            if not exercise_id or "maxWeight" not in fields:
                continue
            try:
                pb = self.record_personal_best(exercise_id, fields["maxWeight"])
            except PlannerError as err:
                log.error("Failed to check personal best for %s: %s", exercise_id, err.message)
                continue
            if pb.new_best:
                name = str(row.get("exerciseName") or (entry.exercise_name if entry else ""))
                out.personal_bests.append({"exerciseName": name, "weight": pb.best})

        try:
            self.store.set_summary_completed(day, True)
            out.daily_completed = True
        except NotFoundError:
            log.warning("No daily workout entry for %s", day)
        return out

    def day_statuses(self, start: str, end: str) -> list[dict[str, Any]]:
        first, last = Date.fromisoformat(start), Date.fromisoformat(end)
        if last < first:
            raise ValidationError("endDate must not be before startDate.")
        if (last - first).days >= MAX_STATUS_DAYS:
            raise ValidationError(f"Date range is limited to {MAX_STATUS_DAYS} days.")

        entries_by_day: dict[str, list[WorkoutEntry]] = {}
        for entry in self.store.list_entries(start, end):
            entries_by_day.setdefault(entry.date, []).append(entry)
        summaries = {s.date: s for s in self.store.list_summaries(start, end)}

        out: list[dict[str, Any]] = []
        day = first
        while day <= last:
            key = day.isoformat()
            summary = summaries.get(key)
            day_entries = entries_by_day.get(key, [])
            out.append(
                {
                    "date": key,
                    "status": day_status(summary, day_entries).value,
                    "dailyWorkoutId": summary.id if summary else None,
                    "workouts": len(day_entries),
                }
            )
            day += timedelta(days=1)
        return out
