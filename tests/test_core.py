import pytest

from chefos.core import services


def test_create_org_defaults_and_unique_slug(app):
    with app.app_context():
        a = services.create_org({"name": "Harbour Bistro"})
        b = services.create_org({"name": "Harbour  Bistro!"})
        assert a.slug == "harbour-bistro"
        assert b.slug == "harbour-bistro-2"
        assert a.stream == "chefos" and a.subscription_tier == "free"


def test_create_org_rejects_unknown_values(app):
    with app.app_context():
        with pytest.raises(ValueError):
            services.create_org({"name": ""})
        with pytest.raises(ValueError):
            services.create_org({"name": "X", "stream": "nope"})
        with pytest.raises(ValueError):
            services.create_org({"name": "X", "subscription_tier": "platinum"})


def test_org_routes(client):
    resp = client.post("/orgs", json={"name": "Cafe Uno", "stream": "homechef"})
    assert resp.status_code == 201
    org = resp.get_json()["org"]
    assert org["stream"] == "homechef"

    resp = client.patch(f"/orgs/{org['id']}", json={"subscription_tier": "pro", "is_beta": True})
    assert resp.status_code == 200
    assert resp.get_json()["org"]["subscription_tier"] == "pro"
    assert resp.get_json()["org"]["is_beta"] is True

    assert client.patch(f"/orgs/{org['id']}", json={"subscription_tier": "gold"}).status_code == 400
    assert client.get("/orgs/9999").status_code == 404


def test_venues(client):
    org_id = client.post("/orgs", json={"name": "Two Sites"}).get_json()["org"]["id"]
    client.post(f"/orgs/{org_id}/venues", json={"name": "Southbank"})
    client.post(f"/orgs/{org_id}/venues", json={"name": "Fortitude Valley", "timezone": "Australia/Sydney"})
    venues = client.get(f"/orgs/{org_id}/venues").get_json()
    assert [v["name"] for v in venues] == ["Fortitude Valley", "Southbank"]
    assert client.post(f"/orgs/{org_id}/venues", json={"name": ""}).status_code == 400


def test_errors_are_json(client):
    resp = client.get("/does-not-exist")
    assert resp.status_code == 404
    assert resp.get_json() == {
        "status": "error",
        "error": "not_found",
        "message": resp.get_json()["message"],
    }
    resp = client.delete("/orgs")
    assert resp.status_code == 405
    assert resp.get_json()["error"] == "method_not_allowed"


def test_is_beta_parses_string_flags(client):
    resp = client.post("/orgs", json={"name": "Beta Kitchen", "is_beta": "false"})
    assert resp.status_code == 201
    org = resp.get_json()["org"]
    assert org["is_beta"] is False

    resp = client.patch(f"/orgs/{org['id']}", json={"is_beta": "true"})
    assert resp.get_json()["org"]["is_beta"] is True
    resp = client.patch(f"/orgs/{org['id']}", json={"is_beta": "0"})
    assert resp.get_json()["org"]["is_beta"] is False
    assert client.patch(f"/orgs/{org['id']}", json={"is_beta": "sometimes"}).status_code == 400


def test_non_object_json_body_is_bad_request(client):
    resp = client.post("/orgs", json=["Cafe Uno"])
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "bad_request"
    assert client.post("/todos/cron/generate-recurring", json=[1]).status_code == 400
    assert client.post("/vendors", json="Meat Hub").status_code == 400
