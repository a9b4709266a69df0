import copy
import itertools
import time
from typing import Any

import pytest
from fastapi.testclient import TestClient

from planner.config import Settings
from planner.errors import NotFoundError, UpstreamError
from planner.main import app, build_services, get_services
from planner.records import (
    checkbox_prop,
    date_prop,
    number_prop,
    relation_prop,
    title_prop,
)

BODY_GROUPS_DB = "db-body-groups"
EXERCISES_DB = "db-exercises"
TEMPLATES_DB = "db-templates"
TEMPLATE_EXERCISES_DB = "db-template-exercises"
WEEKLY_DB = "db-weekly"
DAILY_DB = "db-daily"


def _plain(prop: dict[str, Any]) -> str:
    chunks = prop.get("title") or []
    return "".join(c.get("plain_text") or (c.get("text") or {}).get("content", "") for c in chunks)


def _date_start(prop: dict[str, Any]) -> str:
    return str((prop.get("date") or {}).get("start") or "")


class FakeNotion:
    """In-memory stand-in for NotionClient covering the filters the planner sends."""

    def __init__(self) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.calls: list[tuple[str, str]] = []
        self.fail_create_titles: set[str] = set()
        self.fail_update_ids: set[str] = set()
        self.read_delay = 0.0

    def add(self, database_id: str, properties: dict[str, Any], page_id: str | None = None) -> str:
        page_id = page_id or f"page-{next(self._ids):04d}"
        props = copy.deepcopy(properties)
        for prop in props.values():
            for chunk in prop.get("title") or []:
                chunk.setdefault("plain_text", (chunk.get("text") or {}).get("content", ""))
        self.pages[page_id] = {
            "id": page_id,
            "parent": {"database_id": database_id},
            "archived": False,
            "properties": props,
        }
        return page_id

    def live(self, database_id: str) -> list[dict[str, Any]]:
        return [
            p for p in self.pages.values()
            if p["parent"]["database_id"] == database_id and not p["archived"]
        ]

    def _matches(self, page: dict[str, Any], flt: dict[str, Any]) -> bool:
        if "and" in flt:
            return all(self._matches(page, f) for f in flt["and"])
        prop = page["properties"].get(flt["property"], {})
        if "date" in flt:
            value = _date_start(prop)[:10]
            if not value:
                return False
            cond = flt["date"]
            if "equals" in cond and value != cond["equals"]:
                return False
            if "on_or_after" in cond and value < cond["on_or_after"]:
                return False
            if "on_or_before" in cond and value > cond["on_or_before"]:
                return False
            return True
        if "relation" in flt:
            ids = [r["id"] for r in prop.get("relation") or []]
            return flt["relation"]["contains"] in ids
        raise AssertionError(f"unsupported filter {flt}")

    def _sort_key(self, page: dict[str, Any], name: str) -> Any:
        prop = page["properties"].get(name, {})
        if "number" in prop:
            return prop["number"] or 0
        if "date" in prop:
            return _date_start(prop)
        return _plain(prop)

    def query_database(self, database_id, filter=None, sorts=None):
        self.calls.append(("query", database_id))
        rows = [p for p in self.live(database_id) if not filter or self._matches(p, filter)]
        for sort in reversed(sorts or []):
            rows.sort(key=lambda p: self._sort_key(p, sort["property"]), reverse=sort["direction"] == "descending")
        return copy.deepcopy(rows)

    def retrieve_page(self, page_id):
        self.calls.append(("retrieve", page_id))
        if self.read_delay:
            time.sleep(self.read_delay)
        if page_id not in self.pages:
            raise NotFoundError(f"Could not find page with ID: {page_id}.")
        return copy.deepcopy(self.pages[page_id])

    def create_page(self, database_id, properties):
        self.calls.append(("create", database_id))
        title = _plain(properties.get("Name", {}))
        if any(t in title for t in self.fail_create_titles):
            raise UpstreamError("Record store rejected the request: boom")
        return copy.deepcopy(self.pages[self.add(database_id, properties)])

    def update_page(self, page_id, properties):
        self.calls.append(("update", page_id))
        if page_id not in self.pages:
            raise NotFoundError(f"Could not find page with ID: {page_id}.")
        if page_id in self.fail_update_ids:
            raise UpstreamError("Record store rejected the request: boom")
        page = self.pages[page_id]
        if page["archived"]:
            raise UpstreamError("Record store rejected the request: Can't edit block that is archived.")
        page["properties"].update(copy.deepcopy(properties))
        return copy.deepcopy(page)

    def archive_page(self, page_id):
        self.calls.append(("archive", page_id))
        if page_id not in self.pages:
            raise NotFoundError(f"Could not find page with ID: {page_id}.")
        self.pages[page_id]["archived"] = True
        return copy.deepcopy(self.pages[page_id])

    # ---- seeding helpers ----

    def add_body_group(self, name: str) -> str:
        return self.add(BODY_GROUPS_DB, {"Name": title_prop(name)})

    def add_exercise(self, name: str, body_group_id: str = "", best: float | None = None) -> str:
        props: dict[str, Any] = {"Name": title_prop(name), "Body Group": relation_prop(body_group_id)}
        if best is not None:
            props["Best"] = number_prop(best)
        return self.add(EXERCISES_DB, props)

    def add_summary(self, day: str, completed: bool = False, name: str = "Workout") -> str:
        return self.add(DAILY_DB, {"Name": title_prop(name), "Date": date_prop(day), "Completed": checkbox_prop(completed)})

    def prop(self, page_id: str, name: str) -> Any:
        prop = self.pages[page_id]["properties"].get(name, {})
        for kind in ("number", "checkbox"):
            if kind in prop:
                return prop[kind]
        if "date" in prop:
            return _date_start(prop)
        if "relation" in prop:
            return [r["id"] for r in prop["relation"]]
        return _plain(prop)


@pytest.fixture
def fake() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        notion_api_key="secret-test",
        body_groups_db=BODY_GROUPS_DB,
        exercises_db=EXERCISES_DB,
        templates_db=TEMPLATES_DB,
        template_exercises_db=TEMPLATE_EXERCISES_DB,
        weekly_workout_db=WEEKLY_DB,
        daily_workouts_db=DAILY_DB,
        template_source="static",
    )


@pytest.fixture
def services(fake, settings):
    return build_services(settings, client=fake)


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def chest_day(fake) -> dict[str, str]:
    """Exercises backing the built-in "Chest & Triceps" template."""
    chest = fake.add_body_group("Chest")
    triceps = fake.add_body_group("Triceps")
    return {
        "chest": chest,
        "triceps": triceps,
        "Bench Press": fake.add_exercise("Bench Press", chest, best=185),
        "Push-ups": fake.add_exercise("Push-ups", chest),
        "Tricep Dips": fake.add_exercise("Tricep Dips", triceps, best=40),
        "Skull Crushers": fake.add_exercise("Skull Crushers", triceps, best=60),
    }
