from datetime import date

import pytest

from chefos import db
from chefos.todos import services
from chefos.todos.models import RecurringRule, TaskDelegation, TodoItem
from chefos.todos.recurrence import Daily, Monthly, Weekly, build_recurrence, sunday_based_weekday

from conftest import make_member, make_org

MONDAY = date(2025, 3, 3)


def test_sunday_based_weekday():
    assert sunday_based_weekday(date(2025, 3, 2)) == 0  # domingo
    assert sunday_based_weekday(MONDAY) == 1
    assert sunday_based_weekday(date(2025, 3, 8)) == 6  # sábado


def test_recurrence_descriptors():
    assert build_recurrence("daily") == Daily()
    weekly = build_recurrence("weekly", [1, 3])
    assert isinstance(weekly, Weekly)
    assert weekly.occurs_on(MONDAY)
    assert not weekly.occurs_on(date(2025, 3, 4))
    monthly = build_recurrence("monthly", day_of_month=31)
    assert isinstance(monthly, Monthly)
    # fevereiro: dia 31 cai no último dia do mês
    assert monthly.occurs_on(date(2025, 2, 28))
    assert not monthly.occurs_on(date(2025, 2, 27))
    assert monthly.occurs_on(date(2025, 3, 31))
    with pytest.raises(ValueError):
        build_recurrence("weekly", [])
    with pytest.raises(ValueError):
        build_recurrence("monthly", day_of_month=0)
    with pytest.raises(ValueError):
        build_recurrence("yearly")


def _rule(org_id, title, **kw):
    data = {"title": title, "recurrence_type": "daily", **kw}
    return services.create_rule(org_id, data)


def test_generate_recurring_todos(app):
    with app.app_context():
        org = make_org()
        cook = make_member(org, "cook")
        _rule(org.id, "Check fridge temps")
        _rule(org.id, "Order produce", recurrence_type="weekly", days_of_week=["1", "4"])
        _rule(org.id, "Deep clean", recurrence_type="weekly", days_of_week=["0"])
        _rule(org.id, "Stocktake", recurrence_type="monthly", day_of_month=3, delegate_to=cook.id)
        paused = _rule(org.id, "Old task")
        services.deactivate_rule(paused)

        summary = services.generate_recurring_todos(MONDAY)
        assert summary == {
            "date": "2025-03-03",
            "rules": 4,
            "created": 3,
            "skipped": 0,
            "delegations": 1,
            "errors": 0,
        }
        titles = {t.title for t in TodoItem.query.filter_by(due_date=MONDAY)}
        assert titles == {"Check fridge temps", "Order produce", "Stocktake"}
        delegation = TaskDelegation.query.one()
        assert delegation.delegated_to == cook.id and delegation.due_date == MONDAY
        assert RecurringRule.query.filter_by(title="Stocktake").one().last_generated_on == MONDAY

        # segunda execução no mesmo dia não duplica
        again = services.generate_recurring_todos(MONDAY)
        assert again["created"] == 0 and again["skipped"] == 3
        assert TodoItem.query.count() == 3


def test_existing_manual_todo_suppresses_generation(app):
    with app.app_context():
        org = make_org()
        services.create_todo(org.id, {"title": "Check fridge temps", "due_date": MONDAY})
        _rule(org.id, "Check fridge temps")
        summary = services.generate_recurring_todos(MONDAY)
        assert summary["created"] == 0 and summary["skipped"] == 1


def test_broken_rule_does_not_abort_run(app):
    with app.app_context():
        org = make_org()
        _rule(org.id, "Good rule")
        bad = _rule(org.id, "Bad rule")
        # regra corrompida diretamente no banco
        bad.recurrence_type = "weekly"
        bad.days_of_week = None
        db.session.commit()

        summary = services.generate_recurring_todos(MONDAY)
        assert summary["created"] == 1
        assert summary["errors"] == 1


def test_rule_validation(app):
    with app.app_context():
        org = make_org()
        with pytest.raises(ValueError):
            _rule(org.id, "No days", recurrence_type="weekly")
        other = make_org("Elsewhere")
        stranger = make_member(other, "stranger")
        with pytest.raises(ValueError):
            _rule(org.id, "Wrong org", delegate_to=stranger.id)


def test_complete_and_delegation_flow(app):
    with app.app_context():
        org = make_org()
        porter = make_member(org, "porter")
        todo = services.create_todo(org.id, {"title": "Empty grease trap", "priority": "high"})
        delegation = services.delegate_todo(todo, porter.id)
        assert services.list_delegations(org.id, porter.id)[0].id == delegation.id

        services.set_delegation_status(delegation, "done")
        assert todo.status == "done" and todo.completed_at is not None

        services.complete_todo(todo, done=False)
        assert todo.status == "pending"
        assert delegation.status == "pending"
        with pytest.raises(ValueError):
            services.set_delegation_status(delegation, "lost")


def test_todo_routes(client, app):
    with app.app_context():
        org_id = make_org().id

    resp = client.post("/todos", json={"org_id": org_id, "title": "Label sauces", "due_date": "2025-03-03"})
    assert resp.status_code == 201
    todo_id = resp.get_json()["todo"]["id"]

    assert client.post("/todos", json={"org_id": org_id}).status_code == 400
    assert client.post("/todos", json={"org_id": org_id, "title": "x", "priority": "urgent"}).status_code == 400

    resp = client.patch(f"/todos/{todo_id}", json={"priority": "high"})
    assert resp.status_code == 200
    body = resp.get_json()["todo"]
    assert body["priority"] == "high" and body["title"] == "Label sauces"
    assert body["due_date"] == "2025-03-03"

    listed = client.get(f"/todos?org_id={org_id}&date=2025-03-03").get_json()
    assert [t["id"] for t in listed] == [todo_id]

    done = client.post(f"/todos/{todo_id}/complete").get_json()["todo"]
    assert done["status"] == "done"
    assert client.get(f"/todos?org_id={org_id}&status=pending").get_json() == []

    assert client.delete(f"/todos/{todo_id}").status_code == 200
    assert client.get(f"/todos/{todo_id}").status_code == 404


def test_rule_routes(client, app):
    with app.app_context():
        org_id = make_org().id

    resp = client.post(
        "/todos/rules",
        json={"org_id": org_id, "title": "Sharpen knives", "recurrence_type": "weekly", "days_of_week": [5]},
    )
    assert resp.status_code == 201
    rule = resp.get_json()["rule"]
    assert rule["days_of_week"] == [5] and rule["active"] is True

    # PATCH sem "active" não desativa a regra
    resp = client.patch(f"/todos/rules/{rule['id']}", json={"title": "Sharpen all knives"})
    assert resp.get_json()["rule"]["active"] is True
    assert resp.get_json()["rule"]["title"] == "Sharpen all knives"

    bad = client.patch(f"/todos/rules/{rule['id']}", json={"days_of_week": []})
    assert bad.status_code == 400

    assert client.delete(f"/todos/rules/{rule['id']}").get_json()["rule"]["active"] is False
    assert client.get(f"/todos/rules?org_id={org_id}").get_json() == []

    resp = client.post("/todos/cron/generate-recurring", json={"date": "2025-03-07"})
    assert resp.status_code == 200 and resp.get_json()["rules"] == 0
