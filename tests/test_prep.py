from datetime import date, timedelta

import pytest

from chefos.prep import services
from chefos.prep.models import PrepItem, PrepList

from conftest import make_org

TARGET = date(2025, 3, 10)  # segunda-feira


def _history(org_id, day, tasks):
    services.create_list(org_id, {"prep_date": day, "items": tasks})


def test_count_weekdays():
    # 2025-02-10..2025-03-09 tem 4 segundas
    assert services.count_weekdays(date(2025, 2, 10), date(2025, 3, 9), 0) == 4
    assert services.count_weekdays(date(2025, 3, 4), date(2025, 3, 9), 0) == 0
    assert services.count_weekdays(date(2025, 3, 9), date(2025, 3, 1), 0) == 0


def test_list_status_follows_items(app):
    with app.app_context():
        org = make_org()
        plist = services.create_list(
            org.id,
            {"prep_date": TARGET, "items": [{"task": "Dice onions", "quantity": "2kg"}, {"task": "Pick herbs"}]},
        )
        assert plist.status == "pending" and plist.name == "Prep 2025-03-10"
        first, second = plist.items
        services.complete_item(first)
        assert plist.status == "in_progress"
        services.complete_item(second)
        assert plist.status == "completed"
        services.add_item(plist, {"task": "Portion fish", "urgency": "priority"})
        assert plist.status == "in_progress"
        with pytest.raises(ValueError):
            services.add_item(plist, {"task": "   "})
        with pytest.raises(ValueError):
            services.add_item(plist, {"task": "Thing", "urgency": "yesterday"})


def test_create_list_rolls_back_on_bad_item(app):
    with app.app_context():
        org = make_org()
        with pytest.raises(ValueError):
            services.create_list(
                org.id,
                {"prep_date": TARGET, "items": [{"task": "Dice onions"}, {"task": "Sear", "urgency": "asap"}]},
            )
        assert PrepList.query.filter_by(org_id=org.id).count() == 0
        assert PrepItem.query.count() == 0

        plist = services.create_list(org.id, {"prep_date": TARGET, "items": [{"task": "Pick herbs"}]})
        assert [i.task for i in plist.items] == ["Pick herbs"]
        assert PrepList.query.filter_by(org_id=org.id).count() == 1


def test_suggestions_rank_by_weekday_pattern(app):
    with app.app_context():
        org = make_org()
        mondays = [TARGET - timedelta(weeks=w) for w in range(1, 5)]
        for i, monday in enumerate(mondays):
            tasks = [
                {"task": "Make stock", "quantity": "20L", "station": "sauce"},
                {"task": "Prep  Salad Mix", "quantity": "3 tubs" if i else "2 tubs", "station": "garde"},
            ]
            if i < 2:
                tasks.append({"task": "Bake focaccia", "quantity": "4 trays"})
            _history(org.id, monday, tasks)
        # tarefas de terça: frequentes, mas não às segundas
        for w in range(1, 5):
            _history(org.id, TARGET + timedelta(days=1) - timedelta(weeks=w), [{"task": "Bake focaccia"}])
        # abaixo do mínimo de ocorrências
        _history(org.id, mondays[0], [{"task": "Cure salmon"}])

        found = services.suggest_prep_items(org.id, TARGET, lookback_days=28, min_occurrences=3)
        by_task = {s.task.lower(): s for s in found}
        assert "cure salmon" not in by_task

        assert [s.task for s in found[:2]] == ["Make stock", "Prep Salad Mix"]
        stock = found[0]
        assert stock.weekday_hits == 4 and stock.total_hits == 4 and stock.score == 1.0
        assert stock.typical_quantity == "20L" and stock.station == "sauce"
        assert found[1].typical_quantity == "3 tubs"

        focaccia = by_task["bake focaccia"]
        assert focaccia.weekday_hits == 2 and focaccia.total_hits == 6
        assert focaccia.score == 0.5


def test_suggestions_skip_tasks_already_planned(app):
    with app.app_context():
        org = make_org()
        for w in range(1, 4):
            _history(org.id, TARGET - timedelta(weeks=w), [{"task": "Make stock"}, {"task": "Peel garlic"}])
        _history(org.id, TARGET, [{"task": "make STOCK"}])
        found = services.suggest_prep_items(org.id, TARGET, lookback_days=28, min_occurrences=3)
        assert [s.task for s in found] == ["Peel garlic"]
        assert services.suggest_prep_items(org.id, TARGET, 28, 3, limit=0) == []
        with pytest.raises(ValueError):
            services.suggest_prep_items(org.id, TARGET, lookback_days=0)


def test_prep_routes(client, app):
    with app.app_context():
        org_id = make_org().id

    resp = client.post(
        "/prep/lists",
        json={"org_id": org_id, "prep_date": "2025-03-10", "items": [{"task": "Dice onions"}]},
    )
    assert resp.status_code == 201
    list_id = resp.get_json()["prep_list"]["id"]

    assert client.post("/prep/lists", json={"org_id": org_id}).status_code == 400
    assert client.post("/prep/lists", json={"org_id": org_id, "prep_date": "2025-03-10", "venue_id": 999}).status_code == 400

    resp = client.post(f"/prep/lists/{list_id}/items", json={"task": "Pick herbs", "station": "garde"})
    assert resp.status_code == 201
    item_id = resp.get_json()["item"]["id"]

    resp = client.post(f"/prep/items/{item_id}/complete")
    assert resp.get_json()["list_status"] == "in_progress"

    body = client.get(f"/prep/lists/{list_id}").get_json()
    assert [i["task"] for i in body["items"]] == ["Dice onions", "Pick herbs"]

    sugg = client.get(f"/prep/suggestions?org_id={org_id}&date=2025-03-17")
    assert sugg.status_code == 200 and sugg.get_json()["suggestions"] == []
    assert client.get(f"/prep/suggestions?org_id={org_id}").status_code == 400
    assert client.get(f"/prep/suggestions?org_id={org_id}&date=soon").status_code == 400


def test_create_list_route_leaves_nothing_behind(client, app):
    with app.app_context():
        org_id = make_org().id

    resp = client.post(
        "/prep/lists",
        json={"org_id": org_id, "prep_date": "2025-03-10", "items": [{"task": "Dice onions"}, {"task": " "}]},
    )
    assert resp.status_code == 400
    listed = client.get(f"/prep/lists?org_id={org_id}&date=2025-03-10")
    assert listed.status_code == 200 and listed.get_json() == []
