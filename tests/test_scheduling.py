"""Tests for the scheduling workflows against the in-memory record store."""
import threading

import pytest

from planner.errors import NotFoundError, UpstreamError, ValidationError
from planner.records import DailySummary, TemplateExercise, WorkoutEntry
from planner.scheduling import BEST_LOCK_SLOTS, DayStatus, day_status, summary_window

from .conftest import DAILY_DB, WEEKLY_DB

DAY = "2025-01-06"
OTHER = "2025-01-08"


def _entry(completed=False):
    return WorkoutEntry(id="e", name="T - X", date=DAY, completed=completed)


class TestDayStatus:
    def test_unscheduled(self):
        assert day_status(None, []) is DayStatus.UNSCHEDULED

    def test_scheduled(self):
        assert day_status(DailySummary("s", "Legs", DAY), [_entry(), _entry()]) is DayStatus.SCHEDULED

    def test_entries_without_summary_are_scheduled(self):
        assert day_status(None, [_entry()]) is DayStatus.SCHEDULED

    def test_in_progress(self):
        entries = [_entry(completed=True), _entry()]
        assert day_status(DailySummary("s", "Legs", DAY), entries) is DayStatus.IN_PROGRESS

    def test_all_entries_done_but_not_finished(self):
        entries = [_entry(completed=True)]
        assert day_status(DailySummary("s", "Legs", DAY), entries) is DayStatus.IN_PROGRESS

    def test_completed_follows_summary_only(self):
        summary = DailySummary("s", "Legs", DAY, completed=True)
        assert day_status(summary, [_entry()]) is DayStatus.COMPLETED


class TestSummaryWindow:
    def test_bare_date_without_duration(self):
        assert summary_window(DAY, 0, "07:00") == (DAY, None)

    def test_timed_window(self):
        assert summary_window(DAY, 75, "18:30") == ("2025-01-06T18:30:00", "2025-01-06T19:45:00")

    def test_bad_start_time(self):
        assert summary_window(DAY, 30, "late") == (DAY, None)


class TestInstantiate:
    def test_creates_summary_and_entries(self, fake, services, chest_day):
        result = services.scheduler.instantiate(DAY, "1")

        assert result.summary_created
        assert len(result.workouts) == 4
        assert result.skipped == []
        summaries = fake.live(DAILY_DB)
        assert len(summaries) == 1
        assert fake.prop(summaries[0]["id"], "Completed") is False
        assert fake.prop(summaries[0]["id"], "Date") == DAY

        names = [fake.prop(w["id"], "Name") for w in result.workouts]
        assert names == [
            "Chest & Triceps - Bench Press",
            "Chest & Triceps - Push-ups",
            "Chest & Triceps - Tricep Dips",
            "Chest & Triceps - Skull Crushers",
        ]
        bench = result.workouts[0]["id"]
        assert fake.prop(bench, "Exercises") == [chest_day["Bench Press"]]
        assert fake.prop(bench, "Total Sets") == 3
        assert fake.prop(bench, "Total Reps") == 10
        assert fake.prop(bench, "Max Weight") == 0

    def test_reuses_existing_summary(self, fake, services, chest_day):
        existing = fake.add_summary(DAY)
        result = services.scheduler.instantiate(DAY, "1")
        assert result.daily_workout_id == existing
        assert not result.summary_created
        assert len(fake.live(DAILY_DB)) == 1

    def test_unknown_exercises_are_skipped(self, fake, services):
        fake.add_exercise("Rows")
        result = services.scheduler.instantiate(DAY, "3")
        assert [w["name"] for w in result.workouts] == ["Rows"]
        assert result.skipped == ["Pull-ups"]

    def test_unknown_template_mutates_nothing(self, fake, services, chest_day):
        with pytest.raises(NotFoundError):
            services.scheduler.instantiate(DAY, "missing")
        assert fake.live(DAILY_DB) == []
        assert fake.live(WEEKLY_DB) == []

    def test_override_replaces_template_exercises(self, fake, services, chest_day):
        custom = [
            TemplateExercise(chest_day["Skull Crushers"], "Skull Crushers", 5, 8),
            TemplateExercise("", "Push-ups", 2, 20),
        ]
        result = services.scheduler.instantiate(DAY, "1", custom)
        assert [(w["name"], w["sets"], w["reps"]) for w in result.workouts] == [
            ("Skull Crushers", 5, 8),
            ("Push-ups", 2, 20),
        ]
        assert result.workouts[1]["exerciseId"] == chest_day["Push-ups"]

    def test_partial_failure_keeps_earlier_entries(self, fake, services, chest_day):
        fake.fail_create_titles.add("Tricep Dips")
        result = services.scheduler.instantiate(DAY, "1")
        assert result.failed == 1
        assert [w["name"] for w in result.workouts] == ["Bench Press", "Push-ups", "Skull Crushers"]
        assert len(fake.live(WEEKLY_DB)) == 3

    def test_total_failure_raises(self, fake, services, chest_day):
        fake.fail_create_titles.add("Chest & Triceps - ")
        with pytest.raises(UpstreamError):
            services.scheduler.instantiate(DAY, "1")

    def test_timed_summary_from_estimated_time(self, fake, services, chest_day):
        tpl = services.templates.create_template(
            "Quick Chest", [], [TemplateExercise("", "Bench Press", 3, 5)], estimated_minutes=45
        )
        result = services.scheduler.instantiate(DAY, tpl.id)
        date_value = fake.pages[result.daily_workout_id]["properties"]["Date"]["date"]
        assert date_value == {"start": "2025-01-06T07:00:00", "end": "2025-01-06T07:45:00"}
        assert services.store.summary_on(DAY).id == result.daily_workout_id


class TestPersonalBest:
    def test_higher_weight_is_recorded(self, fake, services, chest_day):
        result = services.scheduler.record_personal_best(chest_day["Bench Press"], 195)
        assert result.new_best
        assert result.previous == 185
        assert fake.prop(chest_day["Bench Press"], "Best") == 195

    @pytest.mark.parametrize("weight", [185, 150])
    def test_equal_or_lower_is_ignored(self, fake, services, chest_day, weight):
        result = services.scheduler.record_personal_best(chest_day["Bench Press"], weight)
        assert not result.new_best
        assert result.best == 185
        assert fake.prop(chest_day["Bench Press"], "Best") == 185
        assert ("update", chest_day["Bench Press"]) not in fake.calls

    def test_missing_best_counts_as_zero(self, fake, services, chest_day):
        assert services.scheduler.record_personal_best(chest_day["Push-ups"], 10).new_best

    def test_concurrent_records_keep_the_maximum(self, fake, services, chest_day):
        bench = chest_day["Bench Press"]
        fake.read_delay = 0.01
        weights = [190, 230, 200, 215, 195, 225]
        results = []
        start = threading.Barrier(len(weights))

        def worker(weight):
            start.wait()
            results.append(services.scheduler.record_personal_best(bench, weight))

        threads = [threading.Thread(target=worker, args=(w,)) for w in weights]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert fake.prop(bench, "Best") == 230
        top = [r for r in results if r.new_best and r.best == 230]
        assert len(top) == 1
        assert all(r.best <= 230 for r in results)

    def test_lock_pool_does_not_grow(self, services):
        scheduler = services.scheduler
        for i in range(500):
            scheduler._best_lock(f"made-up-{i}")
        assert len(scheduler._best_locks) == BEST_LOCK_SLOTS
        assert scheduler._best_lock("ex-1") is scheduler._best_lock("ex-1")


class TestMove:
    def _dates(self, fake, ids):
        return sorted(fake.prop(i, "Date") for i in ids)

    def test_move_is_additive(self, fake, services, chest_day):
        a = services.scheduler.instantiate(DAY, "1")
        b = services.scheduler.instantiate(OTHER, "1", [TemplateExercise("", "Push-ups", 1, 1)])

        result = services.scheduler.move(DAY, OTHER)
        assert result.moved == 4
        assert services.store.entries_on(DAY) == []
        assert len(services.store.entries_on(OTHER)) == 5
        assert fake.prop(b.workouts[0]["id"], "Date") == OTHER
        assert services.store.summary_on(DAY) is None
        assert len(fake.live(DAILY_DB)) == 1
        assert services.store.summary_on(OTHER).id == b.daily_workout_id
        assert fake.pages[a.daily_workout_id]["archived"]

    def test_move_repoints_summary(self, fake, services, chest_day):
        a = services.scheduler.instantiate(DAY, "1")
        services.scheduler.move(DAY, OTHER)
        assert fake.prop(a.daily_workout_id, "Date") == OTHER

    def test_swap_exchanges_days(self, fake, services, chest_day):
        a = services.scheduler.instantiate(DAY, "1")
        b = services.scheduler.instantiate(OTHER, "1", [TemplateExercise("", "Push-ups", 1, 1)])
        fake.pages[b.daily_workout_id]["properties"]["Completed"] = {"checkbox": True}

        result = services.scheduler.move(DAY, OTHER, is_swap=True)
        assert result.moved == 5
        assert {e.id for e in services.store.entries_on(OTHER)} == {w["id"] for w in a.workouts}
        assert {e.id for e in services.store.entries_on(DAY)} == {w["id"] for w in b.workouts}
        assert services.store.summary_on(OTHER).id == a.daily_workout_id
        assert services.store.summary_on(DAY).completed

    def test_swap_twice_restores(self, fake, services, chest_day):
        a = services.scheduler.instantiate(DAY, "1")
        b = services.scheduler.instantiate(OTHER, "6", [TemplateExercise("", "Push-ups", 1, 1)])
        services.scheduler.move(DAY, OTHER, is_swap=True)
        services.scheduler.move(DAY, OTHER, is_swap=True)
        assert {fake.prop(w["id"], "Date") for w in a.workouts} == {DAY}
        assert {fake.prop(w["id"], "Date") for w in b.workouts} == {OTHER}
        assert fake.prop(a.daily_workout_id, "Date") == DAY
        assert fake.prop(b.daily_workout_id, "Date") == OTHER

    def test_partial_move_reports_count(self, fake, services, chest_day):
        a = services.scheduler.instantiate(DAY, "1")
        fake.fail_update_ids.add(a.workouts[1]["id"])
        result = services.scheduler.move(DAY, OTHER)
        assert result.moved == 3
        assert result.failed == 1

    def test_same_day_rejected(self, services):
        with pytest.raises(ValidationError):
            services.scheduler.move(DAY, DAY)


def test_clear_day(fake, services, chest_day):
    services.scheduler.instantiate(DAY, "1")
    assert services.scheduler.clear_day(DAY) == 4
    assert services.store.entries_on(DAY) == []
    assert services.store.summary_on(DAY) is None


class TestFinish:
    def test_finish_records_actuals_and_bests(self, fake, services, chest_day):
        created = services.scheduler.instantiate(DAY, "1")
        bench, pushups = created.workouts[0]["id"], created.workouts[1]["id"]

        out = services.scheduler.finish(
            DAY,
            [
                {"pageId": bench, "totalSets": 3, "totalReps": 8, "maxWeight": 200},
                {"pageId": pushups, "totalSets": 3, "totalReps": 20},
            ],
        )
        assert out.updated == 2
        assert out.daily_completed
        assert out.personal_bests == [{"exerciseName": "Bench Press", "weight": 200}]
        assert fake.prop(bench, "Completed") is True
        assert fake.prop(bench, "Total Reps") == 8
        assert fake.prop(pushups, "Max Weight") == 0
        assert fake.prop(chest_day["Bench Press"], "Best") == 200
        assert services.store.summary_on(DAY).completed

    def test_finish_without_summary(self, fake, services, chest_day):
        created = services.scheduler.instantiate(DAY, "1")
        fake.archive_page(created.daily_workout_id)
        out = services.scheduler.finish(DAY, [])
        assert not out.daily_completed


def test_day_statuses(fake, services, chest_day):
    services.scheduler.instantiate(DAY, "1")
    fake.add_summary("2025-01-07", completed=True)
    days = services.scheduler.day_statuses(DAY, OTHER)
    assert [(d["date"], d["status"], d["workouts"]) for d in days] == [
        (DAY, "scheduled", 4),
        ("2025-01-07", "completed", 0),
        (OTHER, "unscheduled", 0),
    ]
