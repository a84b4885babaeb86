from datetime import datetime, timedelta

import pytest

from chefos import db
from chefos.referrals import fraud, services
from chefos.referrals.models import Referral, ReferralFraudFlag

from conftest import make_member, make_org

NOW = datetime(2025, 3, 15, 12, 0, 0)


def _referral(org_id, email, created_at, status="pending"):
    r = Referral()
    r.referrer_org_id = org_id
    r.code = "TESTCODE"
    r.referred_email = email
    r.created_at = created_at
    r.status = status
    db.session.add(r)
    return r


def test_code_is_stable_and_uppercase(app):
    with app.app_context():
        org = make_org()
        code = services.get_or_create_code(org)
        assert len(code.code) == 8 and code.code == code.code.upper()
        assert services.get_or_create_code(org).code == code.code


def test_record_referral_rules(app):
    with app.app_context():
        org = make_org()
        make_member(org, "owner", role="owner", email="owner@harbour.com.au")
        code = services.get_or_create_code(org).code

        ref = services.record_referral(code.lower(), "  New.Chef@Example.com ")
        assert ref.referred_email == "new.chef@example.com"
        assert ref.status == "pending"

        with pytest.raises(services.DuplicateReferral):
            services.record_referral(code, "NEW.CHEF@example.com")
        with pytest.raises(ValueError):
            services.record_referral(code, "owner@harbour.com.au")
        with pytest.raises(ValueError):
            services.record_referral(code, "x@y.com", referred_org_id=org.id)
        with pytest.raises(ValueError):
            services.record_referral("NOPE0000", "a@b.com")
        with pytest.raises(ValueError):
            services.record_referral(code, "not-an-email")


def test_qualify_percent_hybrid_milestone_and_cap(app):
    with app.app_context():
        org = make_org(subscription_tier="pro")
        code = services.get_or_create_code(org).code
        services.upsert_settings(
            "pro",
            {
                "reward_type": "hybrid",
                "reward_value_percent": 20,
                "reward_value_credit": 10,
                "referred_reward_value_percent": 50,
                "milestone_thresholds": [{"threshold": 2, "bonus": 25}],
                "reward_cap": 100,
            },
        )
        first = services.record_referral(code, "a@kitchen-one.com")
        second = services.record_referral(code, "b@kitchen-two.com")
        third = services.record_referral(code, "c@kitchen-three.com")

        r1 = services.qualify_referral(first, 99, now=NOW)
        # 20% de 99 + 10 de crédito
        assert r1.base == 29.8 and r1.milestone_bonus == 0 and r1.total == 29.8
        assert r1.referred_reward == 49.5

        r2 = services.qualify_referral(second, 99, now=NOW)
        # segunda qualificação atinge o marco de 2
        assert r2.milestone_bonus == 25 and r2.total == 54.8

        r3 = services.qualify_referral(third, 99, now=NOW)
        # teto mensal de 100: restam 15.40
        assert r3.capped is True and r3.total == 15.4
        assert float(third.reward_amount) == 15.4

        with pytest.raises(ValueError):
            services.qualify_referral(first, 99, now=NOW)


def test_qualify_without_settings_gives_zero(app):
    with app.app_context():
        org = make_org()
        code = services.get_or_create_code(org).code
        ref = services.record_referral(code, "z@zed.com")
        result = services.qualify_referral(ref, 49)
        assert result.total == 0 and ref.status == "qualified"


def test_settings_validation(app):
    with app.app_context():
        with pytest.raises(ValueError):
            services.upsert_settings("platinum", {})
        with pytest.raises(ValueError):
            services.upsert_settings("pro", {"reward_type": "cash"})
        with pytest.raises(ValueError):
            services.upsert_settings("pro", {"milestone_thresholds": [{"threshold": 0, "bonus": 5}]})
        s = services.upsert_settings("pro", {"milestone_thresholds": [{"threshold": 10, "bonus": 50}, {"threshold": 5, "bonus": 20}]})
        assert [m["threshold"] for m in s.milestone_thresholds] == [5, 10]


def test_cap_trims_bonus_before_base(app):
    with app.app_context():
        org = make_org(subscription_tier="pro")
        code = services.get_or_create_code(org).code
        services.upsert_settings(
            "pro",
            {
                "reward_type": "credit",
                "reward_value_credit": 30,
                "milestone_thresholds": [{"threshold": 1, "bonus": 25}],
                "reward_cap": 40,
            },
        )
        ref = services.record_referral(code, "first@bistro.com")
        result = services.qualify_referral(ref, 99, now=NOW)
        # crédito de 30 fica inteiro; o bônus de 25 cai para 10
        assert result.capped is True
        assert result.base == 30 and result.milestone_bonus == 10 and result.total == 40


def test_settings_active_accepts_string_false(app):
    with app.app_context():
        org = make_org(subscription_tier="pro")
        code = services.get_or_create_code(org).code
        settings = services.upsert_settings("pro", {"reward_type": "credit", "reward_value_credit": 30, "active": "false"})
        assert settings.active is False
        with pytest.raises(ValueError):
            services.upsert_settings("pro", {"active": "maybe"})
        ref = services.record_referral(code, "quiet@bistro.com")
        assert services.qualify_referral(ref, 99, now=NOW).total == 0


def test_fraud_helpers():
    assert fraud.normalized_local_part("John.Smith+promo@x.com") == "johnsmith"
    assert fraud.normalized_local_part("johnsmith42@y.com") == "johnsmith"
    base = datetime(2025, 1, 1)
    times = [base, base + timedelta(hours=5), base + timedelta(hours=23), base + timedelta(hours=30)]
    assert fraud.max_in_window(times) == 3
    assert fraud.max_in_window([]) == 0


def test_scan_flags_each_pattern_once(app, monkeypatch):
    sent = []
    monkeypatch.setattr(fraud, "send_admin_alert", lambda subject, html: sent.append(subject) or True)
    with app.app_context():
        rapid = make_org("Rapid")
        cluster = make_org("Cluster")
        prefix = make_org("Prefix")
        clean = make_org("Clean")
        start = NOW - timedelta(days=2)
        for i, name in enumerate(["alice", "bruno", "carla", "dmitri", "elena"]):
            _referral(rapid.id, f"{name}@unique{i}.com", start + timedelta(hours=i))
        for i, name in enumerate(["ann", "bob", "cat"]):
            _referral(cluster.id, f"{name}@sketchy.io", start - timedelta(days=i * 3))
        for i, email in enumerate(["j.doe@gmail.com", "jdoe+x@gmail.com", "jdoe7@outlook.com"]):
            _referral(prefix.id, email, start - timedelta(days=i * 3))
        # domínios públicos não formam cluster
        for i, name in enumerate(["amy", "ben", "cal"]):
            _referral(clean.id, f"{name}@gmail.com", start - timedelta(days=i * 3))
        # fora da janela de análise
        for i in range(5):
            _referral(clean.id, f"old{i}@old.com", NOW - timedelta(days=90, hours=-i))
        db.session.commit()

        summary = fraud.scan_referral_fraud(NOW)
        flags = {(f.referrer_org_id, f.flag_type) for f in ReferralFraudFlag.query.all()}
        assert flags == {
            (rapid.id, "rapid_signups"),
            (cluster.id, "domain_cluster"),
            (prefix.id, "prefix_similarity"),
        }
        assert summary["new_flags"] == 3 and summary["alert_sent"] is True
        assert len(sent) == 1

        again = fraud.scan_referral_fraud(NOW)
        assert again["new_flags"] == 0 and again["already_open"] == 3
        assert len(sent) == 1


def test_confirming_flag_rejects_pending(app):
    with app.app_context():
        org = make_org()
        _referral(org.id, "a@a.com", NOW)
        flag = ReferralFraudFlag()
        flag.referrer_org_id = org.id
        flag.flag_type = "rapid_signups"
        flag.detail = {}
        db.session.add(flag)
        db.session.commit()
        services.review_flag(flag, "confirmed")
        assert Referral.query.one().status == "rejected"
        with pytest.raises(ValueError):
            services.review_flag(flag, "open")


def test_referral_routes(client, app):
    with app.app_context():
        org_id = make_org().id
    code = client.get(f"/referrals/code?org_id={org_id}").get_json()["code"]

    resp = client.post("/referrals", json={"code": code, "email": "friend@bistro.com"})
    assert resp.status_code == 201
    ref_id = resp.get_json()["referral"]["id"]
    assert client.post("/referrals", json={"code": code, "email": "friend@bistro.com"}).status_code == 409

    assert client.post(f"/referrals/{ref_id}/qualify", json={}).status_code == 400
    resp = client.post(f"/referrals/{ref_id}/qualify", json={"plan_price": 49})
    assert resp.get_json()["referral"]["status"] == "qualified"

    resp = client.put("/referrals/settings/pro", json={"reward_type": "credit", "reward_value_credit": 15})
    assert resp.get_json()["settings"]["reward_value_credit"] == 15.0
    assert client.get("/referrals/settings").get_json()[0]["plan_tier"] == "pro"

    scan = client.post("/referrals/cron/scan-fraud")
    assert scan.status_code == 200 and scan.get_json()["new_flags"] == 0
    assert client.get("/referrals/flags").get_json() == []
