import logging
import math
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Any

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse

from .config import Settings, configure_logging, load_settings
from .errors import PlannerError, ValidationError
from .notion import NotionClient
from .records import TemplateExercise
from .scheduling import Scheduler
from .store import WorkoutStore
from .templates import TemplateRepository, build_template_repository
from .ui import render_page

log = logging.getLogger(__name__)

app = FastAPI(title="Workout Planner")


@dataclass
class Services:
    settings: Settings
    store: WorkoutStore
    templates: TemplateRepository
    scheduler: Scheduler


def build_services(settings: Settings, client: NotionClient | None = None) -> Services:
    client = client or NotionClient(settings)
    store = WorkoutStore(client, settings)
    templates = build_template_repository(client, settings)
    return Services(settings, store, templates, Scheduler(store, templates, settings))


@lru_cache(maxsize=1)
def get_services() -> Services:
    settings = load_settings()
    configure_logging(settings)
    return build_services(settings)


@app.exception_handler(PlannerError)
def planner_error_handler(request: Request, err: PlannerError) -> JSONResponse:
    if err.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, err.message)
    else:
        log.info("%s %s rejected: %s", request.method, request.url.path, err.message)
    return JSONResponse(status_code=err.status_code, content=err.to_body())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, err: RequestValidationError) -> JSONResponse:
    problems = err.errors()
    log.info("%s %s rejected: %s", request.method, request.url.path, problems)
    detail = "; ".join(
        f"{'.'.join(str(p) for p in problem.get('loc', ()))}: {problem.get('msg', 'invalid')}" for problem in problems
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {detail}"})


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, err: Exception) -> JSONResponse:
    log.exception("Unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": f"Unexpected error: {err}"})


def _text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _required(payload: dict[str, Any], *keys: str, message: str) -> list[str]:
    values = [_text(payload, k) for k in keys]
    if not all(values):
        raise ValidationError(message)
    return values


def _date(value: str, field: str = "date") -> str:
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError as err:
        raise ValidationError(f"Invalid {field} format, use YYYY-MM-DD.") from err


def _number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric.")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        n = value
    else:
        try:
            n = float(str(value).strip())
        except (TypeError, ValueError) as err:
            raise ValidationError(f"{field} must be numeric.") from err
    if not math.isfinite(n):
        raise ValidationError(f"{field} must be numeric.")
    return int(n) if n.is_integer() else n


def _optional_number(payload: dict[str, Any], key: str, default: float = 0) -> float:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return _number(value, key)


def _id_list(payload: dict[str, Any], key: str) -> list[str] | None:
    raw = payload.get(key)
    if not isinstance(raw, list):
        return None
    return [str(x).strip() for x in raw if str(x).strip()]


def _date_range(start: str | None, end: str | None) -> tuple[str | None, str | None]:
    if start and end:
        return _date(start, "startDate"), _date(end, "endDate")
    return None, None


def _template_exercises(raw: Any) -> list[TemplateExercise]:
    if not isinstance(raw, list):
        raise ValidationError("exercises must be a list.")
    out: list[TemplateExercise] = []
    for i, row in enumerate(raw):
        if not isinstance(row, dict):
            raise ValidationError("Each exercise must be an object.")
        out.append(
            TemplateExercise(
                exercise_id=_text(row, "exerciseId"),
                exercise_name=_text(row, "exerciseName") or _text(row, "name"),
                default_sets=_optional_number(row, "defaultSets", _optional_number(row, "sets")),
                default_reps=_optional_number(row, "defaultReps", _optional_number(row, "reps")),
                order=_optional_number(row, "order", i + 1),
            )
        )
    return out


@app.get("/", response_class=HTMLResponse)
def page() -> str:
    return render_page()


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/body-groups")
def get_body_groups(services: Services = Depends(get_services)) -> list[dict[str, Any]]:
    return [bg.to_dict() for bg in services.store.list_body_groups()]


@app.get("/exercises")
def get_exercises(services: Services = Depends(get_services)) -> list[dict[str, Any]]:
    return [ex.to_dict() for ex in services.store.list_exercises()]


@app.post("/exercises/by-body-groups")
def exercises_by_body_groups(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> list[dict[str, Any]]:
    ids = _id_list(payload, "bodyGroupIds")
    if not ids:
        raise ValidationError("Body group IDs array is required")
    return services.store.exercises_by_body_groups(ids)


@app.post("/exercises/best")
def exercise_bests(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, float]:
    ids = _id_list(payload, "exerciseIds")
    if ids is None:
        raise ValidationError("Exercise IDs array is required")
    return services.store.get_bests(ids)


@app.post("/exercises/update-best")
def update_exercise_best(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    exercise_id = _text(payload, "exerciseId")
    if not exercise_id or payload.get("newBest") is None:
        raise ValidationError("Exercise ID and new best value are required")
    services.store.set_best(exercise_id, _number(payload["newBest"], "newBest"))
    return {"success": True, "message": "Personal best updated"}


@app.post("/exercises/record-best")
def record_exercise_best(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    exercise_id = _text(payload, "exerciseId")
    if not exercise_id or payload.get("maxWeight") is None:
        raise ValidationError("Exercise ID and max weight are required")
    result = services.scheduler.record_personal_best(exercise_id, _number(payload["maxWeight"], "maxWeight"))
    return {
        "success": True,
        "newBest": result.new_best,
        "best": result.best,
        "previousBest": result.previous,
    }


@app.get("/templates")
def get_templates(services: Services = Depends(get_services)) -> list[dict[str, Any]]:
    return [t.to_dict() for t in services.templates.list_templates()]


@app.post("/templates")
def create_template(payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)) -> dict[str, Any]:
    name = _text(payload, "name")
    if not name:
        raise ValidationError("Template name is required")
    body_groups = _id_list(payload, "bodyGroups") or []
    exercises = _template_exercises(payload.get("exercises", []))
    estimated = max(0.0, _optional_number(payload, "estimatedTime"))
    return services.templates.create_template(name, body_groups, exercises, estimated).to_dict()


@app.get("/templates/body-groups")
def get_template_body_groups(
    template_id: str | None = Query(default=None, alias="templateId"),
    services: Services = Depends(get_services),
) -> dict[str, list[str]]:
    if not template_id:
        raise ValidationError("Template ID is required")
    return {"bodyGroupIds": services.templates.body_group_ids(template_id)}


@app.get("/templates/{template_id}")
def get_template(template_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    return services.templates.get_template(template_id).to_dict()


@app.delete("/templates/{template_id}")
def delete_template(template_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    services.templates.delete_template(template_id)
    return {"success": True, "message": f"Deleted template {template_id}"}


@app.get("/workouts")
def get_workouts(
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    start, end = _date_range(start_date, end_date)
    return [e.to_dict() for e in services.store.list_entries(start, end)]


@app.post("/workouts")
def create_workouts_from_template(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    template_id, day = _required(payload, "templateId", "date", message="Template ID and date are required")
    custom = payload.get("customExercises")
    overrides = _template_exercises(custom) if custom is not None else None

    result = services.scheduler.instantiate(_date(day), template_id, overrides)
    message = f"Created {len(result.workouts)} workout entries for {result.template.name}"
    if result.skipped:
        message += f" (skipped {len(result.skipped)} unknown exercises)"
    if result.failed:
        message += f" ({result.failed} failed)"
    return {
        "success": True,
        "workouts": result.workouts,
        "dailyWorkoutId": result.daily_workout_id,
        "message": message,
    }


@app.post("/workouts/create")
def create_workout_entry(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    template_id, exercise_id, exercise_name, day = _required(
        payload,
        "templateId",
        "exerciseId",
        "exerciseName",
        "date",
        message="Template ID, exercise ID, exercise name, and date are required",
    )
    workout_id = services.scheduler.create_single(
        template_id,
        exercise_id,
        exercise_name,
        _date(day),
        sets=_optional_number(payload, "totalSets"),
        reps=_optional_number(payload, "totalReps"),
        max_weight=_optional_number(payload, "maxWeight"),
    )
    return {"success": True, "workoutId": workout_id, "message": f"Created workout entry for {exercise_name}"}


@app.post("/workouts/update")
def update_workout_entry(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    page_id = _text(payload, "pageId")
    if not page_id:
        raise ValidationError("Page ID is required")
    fields: dict[str, Any] = {}
    for key in ("totalSets", "totalReps", "maxWeight"):
        if payload.get(key) is not None:
            fields[key] = _number(payload[key], key)
    if payload.get("completed") is not None:
        fields["completed"] = payload["completed"] is True
    services.store.update_entry(page_id, fields)
    return {"success": True, "message": "Updated workout"}


@app.post("/workouts/delete")
def delete_workout_entry(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    page_id = _text(payload, "pageId")
    if page_id:
        services.store.archive_entry(page_id)
        return {"success": True, "message": f"Deleted workout entry {page_id}"}

    day, exercise_id = _required(
        payload, "date", "exerciseId", message="Either pageId or (date and exerciseId) are required"
    )
    batch = services.store.archive_entries_for(_date(day), exercise_id)
    return {
        "success": True,
        "message": f"Deleted {batch.count} workout entries for exercise {exercise_id} on {day}",
    }


@app.post("/workouts/move")
def move_workouts(payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)) -> dict[str, Any]:
    from_date, to_date = _required(payload, "fromDate", "toDate", message="Both fromDate and toDate are required")
    from_date, to_date = _date(from_date, "fromDate"), _date(to_date, "toDate")
    is_swap = payload.get("isSwap") is True
    result = services.scheduler.move(from_date, to_date, is_swap=is_swap)
    verb = "Swapped" if is_swap else "Moved"
    joiner = "and" if is_swap else "to"
    message = f"{verb} workout from {from_date} {joiner} {to_date}"
    if result.failed:
        message += f" ({result.failed} entries failed)"
    return {"success": True, "message": message, "movedWorkouts": result.moved}


@app.post("/workouts/clear")
def clear_workouts(payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)) -> dict[str, Any]:
    (day,) = _required(payload, "date", message="Date is required")
    day = _date(day)
    deleted = services.scheduler.clear_day(day)
    return {"success": True, "message": f"Cleared workouts on {day}", "deletedWorkouts": deleted}


@app.post("/workouts/finish")
def finish_workout(payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)) -> dict[str, Any]:
    (day,) = _required(payload, "date", message="Date is required")
    rows = payload.get("exercises", [])
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ValidationError("exercises must be a list of objects.")
    results: list[dict[str, Any]] = []
    for row in rows:
        if not _text(row, "pageId"):
            raise ValidationError("Each exercise needs a pageId.")
        clean = dict(row)
        for key in ("totalSets", "totalReps", "maxWeight"):
            if row.get(key) is not None:
                clean[key] = _number(row[key], key)
        results.append(clean)

    outcome = services.scheduler.finish(_date(day), results)
    return {
        "success": not outcome.failed,
        "message": f"Saved {outcome.updated} of {len(results)} exercises",
        "updated": outcome.updated,
        "personalBests": outcome.personal_bests,
        "dailyCompleted": outcome.daily_completed,
    }


@app.get("/daily-workouts")
def get_daily_workouts(
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    start, end = _date_range(start_date, end_date)
    return [s.to_dict() for s in services.store.list_summaries(start, end)]


@app.post("/daily-workouts/update")
def update_daily_workout(
    payload: dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    (day,) = _required(payload, "date", message="Date is required")
    completed = payload.get("completed") is True
    services.store.set_summary_completed(_date(day), completed)
    state = "completed" if completed else "not completed"
    return {"success": True, "message": f"Daily workout marked as {state}"}


@app.get("/days")
def get_days(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    return services.scheduler.day_statuses(_date(start_date, "startDate"), _date(end_date, "endDate"))
