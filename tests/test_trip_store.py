import random

import pytest

from tripplanner.models.domain import DAY_COLORS, Location, get_day_color
from tripplanner.services.trip.snapshot import SnapshotValidationError
from tripplanner.services.trip.store import TripStore


def _store_with_days(count: int) -> TripStore:
    store = TripStore()
    for _ in range(count):
        store.add_day()
    return store


def _stop_ids(store: TripStore, day_index: int) -> list[str]:
    return [stop.id for stop in store.trip.days[day_index].stops]


def _add_stops(store: TripStore, day_index: int, *names: str) -> list[str]:
    day_id = store.trip.days[day_index].id
    for name in names:
        store.add_stop(day_id, name=name, location=Location(lat=48.0, lng=2.0))
    return _stop_ids(store, day_index)[-len(names):]


def test_add_day_appends_selects_and_colors():
    store = TripStore()
    store.add_day()
    first = store.trip.days[0]
    assert store.selected_day_id == first.id
    assert first.color == DAY_COLORS[0]
    assert first.stops == ()
    assert first.is_visible is True

    store.add_day()
    assert [day.color for day in store.trip.days] == [DAY_COLORS[0], DAY_COLORS[1]]
    assert store.selected_day_id == store.trip.days[1].id


def test_add_day_after_inserts_and_recolors():
    store = _store_with_days(3)
    ids_before = [day.id for day in store.trip.days]

    store.add_day(after_day_id=ids_before[0])

    days = store.trip.days
    assert days[0].id == ids_before[0]
    assert days[1].id not in ids_before
    assert [day.id for day in days[2:]] == ids_before[1:]
    for index, day in enumerate(days):
        assert day.color == get_day_color(index)


def test_add_day_after_unknown_id_appends():
    store = _store_with_days(2)
    store.add_day(after_day_id="missing")
    assert len(store.trip.days) == 3
    assert store.selected_day_id == store.trip.days[-1].id


def test_remove_day_recolors_and_clears_selection():
    store = _store_with_days(3)
    removed = store.trip.days[0].id
    store.select_day(removed)

    store.remove_day(removed)

    assert removed not in [day.id for day in store.trip.days]
    assert store.selected_day_id is None
    for index, day in enumerate(store.trip.days):
        assert day.color == get_day_color(index)


def test_colors_follow_index_for_random_day_sequences():
    rng = random.Random(7)
    store = TripStore()
    for _ in range(60):
        if store.trip.days and rng.random() < 0.4:
            store.remove_day(rng.choice(store.trip.days).id)
        else:
            after = rng.choice(store.trip.days).id if store.trip.days and rng.random() < 0.5 else None
            store.add_day(after)
        for index, day in enumerate(store.trip.days):
            assert day.color == get_day_color(index)


def test_toggle_visibility_only_flips_flag():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    before = store.trip.days[0]

    store.toggle_day_visibility(day_id)

    after = store.trip.days[0]
    assert after.is_visible is False
    assert after.stops == before.stops
    assert after.color == before.color


def test_add_stop_defaults():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id

    store.add_stop(day_id)

    stop = store.trip.days[0].stops[0]
    assert stop.name == "New Stop"
    assert stop.type == "waypoint"
    assert stop.is_locked is False
    assert stop.location == Location(lat=0.0, lng=0.0)
    assert stop.duration is None


def test_add_stop_generates_unique_ids():
    store = _store_with_days(2)
    _add_stops(store, 0, "A", "B")
    _add_stops(store, 1, "C")
    all_ids = _stop_ids(store, 0) + _stop_ids(store, 1)
    assert len(set(all_ids)) == 3


def test_update_stop_merges_and_keeps_position():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    a, b, c = _add_stops(store, 0, "A", "B", "C")

    store.update_stop(day_id, b, name="Bee", duration=45, notes="lunch")

    stops = store.trip.days[0].stops
    assert [stop.id for stop in stops] == [a, b, c]
    assert stops[1].name == "Bee"
    assert stops[1].duration == 45
    assert stops[1].notes == "lunch"
    assert stops[1].location == Location(lat=48.0, lng=2.0)


def test_update_stop_rejects_unknown_fields():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    (a,) = _add_stops(store, 0, "A")
    with pytest.raises(ValueError):
        store.update_stop(day_id, a, id="other")


def test_move_stop_swaps_with_neighbour():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    a, b, c = _add_stops(store, 0, "A", "B", "C")

    store.move_stop(day_id, c, "up")
    assert _stop_ids(store, 0) == [a, c, b]

    store.move_stop(day_id, a, "down")
    assert _stop_ids(store, 0) == [c, a, b]


@pytest.mark.parametrize("position, direction", [(0, "up"), (-1, "down")])
def test_move_stop_at_boundary_is_noop(position, direction):
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    stop_ids = _add_stops(store, 0, "A", "B", "C")
    before = store.trip

    after = store.move_stop(day_id, stop_ids[position], direction)

    assert after is before
    assert store.trip == before


def test_stop_order_matches_reference_list():
    rng = random.Random(42)
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    reference: list[str] = []

    for step in range(300):
        action = rng.choice(["add", "add", "remove", "up", "down"])
        if action == "add" or not reference:
            store.add_stop(day_id, name=f"S{step}", location=Location(lat=1.0, lng=1.0))
            reference.append(store.trip.days[0].stops[-1].id)
        elif action == "remove":
            victim = rng.choice(reference)
            store.remove_stop(day_id, victim)
            reference.remove(victim)
        else:
            target = rng.choice(reference)
            index = reference.index(target)
            other = index - 1 if action == "up" else index + 1
            if 0 <= other < len(reference):
                reference[index], reference[other] = reference[other], reference[index]
            store.move_stop(day_id, target, action)
        assert _stop_ids(store, 0) == reference


def test_move_stop_to_day_appends_and_preserves_count():
    store = _store_with_days(2)
    source_id, target_id = (day.id for day in store.trip.days)
    a, b = _add_stops(store, 0, "A", "B")
    (c,) = _add_stops(store, 1, "C")
    total_before = store.trip.stop_count

    store.move_stop_to_day(source_id, target_id, a)

    assert _stop_ids(store, 0) == [b]
    assert _stop_ids(store, 1) == [c, a]
    assert store.trip.stop_count == total_before


def test_move_stop_to_day_noops():
    store = _store_with_days(2)
    source_id, target_id = (day.id for day in store.trip.days)
    (a,) = _add_stops(store, 0, "A")
    before = store.trip

    assert store.move_stop_to_day(source_id, source_id, a) is before
    assert store.move_stop_to_day(source_id, target_id, "missing") is before
    assert store.move_stop_to_day(source_id, "missing-day", a) is before
    assert store.move_stop_to_day("missing-day", target_id, a) is before


def test_toggle_lock_and_relocation():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    (a,) = _add_stops(store, 0, "A")

    store.relocate_stop(day_id, a, Location(lat=10.0, lng=10.0))
    assert store.trip.days[0].stops[0].location == Location(lat=10.0, lng=10.0)

    store.toggle_lock(day_id, a)
    assert store.trip.days[0].stops[0].is_locked is True

    store.relocate_stop(day_id, a, Location(lat=20.0, lng=20.0))
    assert store.trip.days[0].stops[0].location == Location(lat=10.0, lng=10.0)


def test_unknown_ids_are_noops():
    store = _store_with_days(1)
    day_id = store.trip.days[0].id
    (a,) = _add_stops(store, 0, "A")
    before = store.trip

    assert store.remove_day("missing") is before
    assert store.toggle_day_visibility("missing") is before
    assert store.add_stop("missing", name="X") is before
    assert store.update_stop(day_id, "missing", name="X") is before
    assert store.remove_stop("missing", a) is before
    assert store.move_stop(day_id, "missing", "up") is before
    assert store.toggle_lock(day_id, "missing") is before
    assert store.update_route_segments("missing", ()) is before
    assert store.update_day_stats("missing", None) is before


def test_inherited_start():
    store = _store_with_days(3)
    first, second, third = (day.id for day in store.trip.days)

    assert store.get_inherited_start(first) is None
    assert store.get_inherited_start(second) is None
    assert store.get_inherited_start("missing") is None

    _, last = _add_stops(store, 0, "A", "B")
    inherited = store.get_inherited_start(second)
    assert inherited is not None
    assert inherited.stop.id == last
    assert inherited.from_day_index == 0
    # Day 2 is empty, so day 3 has nothing to inherit.
    assert store.get_inherited_start(third) is None
    assert _stop_ids(store, 1) == []


def test_listeners_receive_new_trip_and_errors_are_contained():
    store = _store_with_days(1)
    seen = []

    def broken(trip):
        raise RuntimeError("boom")

    store.subscribe(broken)
    unsubscribe = store.subscribe(seen.append)

    store.update_trip_name("Road Trip")
    assert store.trip.name == "Road Trip"
    assert seen == [store.trip]

    store.update_trip_name("Road Trip")
    assert len(seen) == 1

    unsubscribe()
    store.update_trip_name("Other")
    assert len(seen) == 1


def test_import_snapshot_rejects_invalid_payload_without_mutation():
    store = _store_with_days(2)
    before = store.trip

    with pytest.raises(SnapshotValidationError):
        store.import_snapshot({"name": "no id", "days": []})
    with pytest.raises(SnapshotValidationError):
        store.import_snapshot({"id": "t1", "name": "no days"})

    assert store.trip is before


def test_import_snapshot_loads_and_selects_first_day():
    store = TripStore()
    store.import_snapshot(
        {
            "id": "trip-1",
            "name": "Loire",
            "days": [
                {"id": "d1", "date": "2024-06-01", "stops": []},
                {"id": "d2", "date": "2024-06-02", "stops": []},
            ],
        }
    )
    assert store.trip.id == "trip-1"
    assert store.selected_day_id == "d1"
    assert [day.color for day in store.trip.days] == [DAY_COLORS[0], DAY_COLORS[1]]
