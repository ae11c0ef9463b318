"""Tests for alert request parsing, alert matching and the alert service."""

import pytest

from conftest import BASE_TIME
from signal_alerts.alerts import CustomAlertService, match_alert, score_alert
from signal_alerts.errors import PersistenceError
from signal_alerts.models import AlertEntities, CustomAlert
from signal_alerts.parser import extract_keywords, generate_description, parse_request
from signal_alerts.storage import Storage


def make_alert(**overrides):
    fields = dict(
        id="alert-1",
        user_id="u1",
        type="product_announcement",
        title="Apple",
        description="Alert for Apple",
    )
    fields.update(overrides)
    return CustomAlert(**fields)


# Parsing

def test_parse_product_announcement_request():
    parsed = parse_request("Notify me when Apple announces a new iPhone")

    assert parsed.intent == "create_alert"
    assert parsed.alert_type == "product_announcement"
    assert parsed.entities.companies == ["Apple"]
    assert parsed.entities.products == ["Iphone"]
    assert parsed.entities.artists == []
    assert parsed.keywords == ["apple", "announces", "new", "iphone"]
    assert generate_description(parsed) == "Alert for Apple and Iphone product announcements"


def test_parse_quoted_topics():
    parsed = parse_request('Alert me about "quantum computing" news')

    assert parsed.intent == "create_alert"
    assert parsed.alert_type == "news_mention"
    assert parsed.entities.topics == ["quantum computing"]
    assert generate_description(parsed) == "Alert for quantum computing news mentions"


@pytest.mark.parametrize(
    "query,intent",
    [
        ("Show me Tesla news", "search"),
        ("Summarize today's crypto market", "summarize"),
        ("What is happening with Nvidia?", "question"),
        ("Random words here", "unknown"),
    ],
)
def test_parse_other_intents(query, intent):
    parsed = parse_request(query)
    assert parsed.intent == intent
    assert parsed.alert_type is None


def test_extract_keywords_filters_stop_words_and_duplicates():
    assert extract_keywords("Tell me about the new Tesla, Tesla earnings!") == ["new", "tesla", "earnings"]


def test_description_for_non_alert_is_raw_query():
    parsed = parse_request("Show me Tesla news")
    assert generate_description(parsed) == "Show me Tesla news"


# Matching

def test_entity_only_hit_is_below_threshold(make_signal):
    alert = make_alert(
        keywords=["launch", "event", "keynote", "ipad"],
        entities=AlertEntities(companies=["Apple"]),
    )
    signal = make_signal("Apple shares slip")

    score, required, matched = score_alert(signal, alert)

    assert (score, required, matched) == (1.0, 2, ["Apple"])
    assert match_alert(signal, alert) is None


def test_partial_keywords_push_over_threshold(make_signal):
    alert = make_alert(
        keywords=["launch", "event", "keynote", "ipad"],
        entities=AlertEntities(companies=["Apple"]),
    )
    signal = make_signal("Apple launch event recap")

    match = match_alert(signal, alert)

    assert match is not None
    assert match.match_score == pytest.approx(0.75)
    assert match.matched_keywords == ["launch", "event", "Apple"]
    assert match.signal_id == signal.id


def test_tags_and_content_count_towards_match(make_signal):
    alert = make_alert(keywords=["earnings"], entities=AlertEntities(topics=["semiconductors"]))
    signal = make_signal("Quarterly update", content="Earnings beat.", tags=["Semiconductors"])

    assert match_alert(signal, alert).match_score == pytest.approx(1.0)


def test_alert_without_criteria_never_matches(make_signal):
    assert match_alert(make_signal("Anything"), make_alert()) is None


# Service

def test_create_alert_persists_parsed_request(storage, clock):
    service = CustomAlertService(storage, clock=clock)

    alert = service.create_alert("u1", parse_request("Notify me when Apple announces a new iPhone"))

    stored = storage.get_alert(alert.id)
    assert stored.title == "Apple"
    assert stored.type == "product_announcement"
    assert stored.entities.products == ["Iphone"]
    assert stored.created_at == BASE_TIME
    assert stored.is_active is True


def test_create_alert_rejects_non_alert_intent(storage):
    with pytest.raises(ValueError):
        CustomAlertService(storage).create_alert("u1", parse_request("Show me Tesla news"))
    assert storage.get_user_alerts("u1") == []


def test_toggle_delete_and_stats(storage, clock):
    service = CustomAlertService(storage, clock=clock)
    first = service.create_alert("u1", parse_request("Alert me about Tesla earnings"))
    second = service.create_alert("u1", parse_request("Notify me about BTS album drops"))

    assert service.toggle_alert(first.id).is_active is False
    assert [a.id for a in service.get_active_alerts("u1")] == [second.id]
    assert service.toggle_alert("missing") is None
    assert service.get_alert_stats("u1") == {"total": 2, "active": 1, "triggered": 0}

    service.delete_alert(second.id)
    assert [a.id for a in service.get_user_alerts("u1")] == [first.id]


def test_check_records_trigger(storage, clock, make_signal):
    service = CustomAlertService(storage, clock=clock)
    alert = service.create_alert("u1", parse_request("Alert me about Tesla earnings"))
    clock.advance(minutes=5)

    matched = service.check(make_signal("Tesla earnings beat estimates"), [alert])

    assert [a.id for a in matched] == [alert.id]
    stored = storage.get_alert(alert.id)
    assert stored.triggered_count == 1
    assert stored.last_triggered == clock()
    assert service.check(make_signal("Gardening tips"), [stored]) == []


def test_process_signals_creates_alert_notifications(storage, clock, make_signal):
    service = CustomAlertService(storage, clock=clock)
    alert = service.create_alert("u1", parse_request("Notify me when Apple announces a new iPhone"))
    hit = make_signal("Apple announces iPhone 17")
    miss = make_signal("Local weather")

    matches, notifications = service.process_signals("u1", [hit, miss])

    assert [m.signal_id for m in matches] == [hit.id]
    [notification] = notifications
    assert notification.id == f"alert_{alert.id}_{hit.id}"
    assert notification.title == "🎯 Apple"
    assert notification.message == hit.title
    assert notification.category == "Custom Alert"
    assert notification.urgency == "high"
    assert [n.id for n in storage.get_notifications("u1")] == [notification.id]
    assert service.get_alert_stats("u1")["triggered"] == 1


def test_process_signals_without_alerts(storage, make_signal):
    assert CustomAlertService(storage).process_signals("u1", [make_signal()]) == ([], [])


class BrokenAlertStorage(Storage):
    """Store whose alert writes and lookups always fail."""

    def save_alert(self, alert):
        raise PersistenceError("disk full")

    def get_alert(self, alert_id):
        raise PersistenceError("disk full")

    def delete_alert(self, alert_id):
        raise PersistenceError("disk full")


def test_alert_management_survives_storage_failures(tmp_path, clock):
    service = CustomAlertService(BrokenAlertStorage(str(tmp_path / "signals.sqlite")), clock=clock)

    alert = service.create_alert("u1", parse_request("Alert me about Tesla earnings"))

    assert alert.title == "Tesla"
    assert alert.is_active is True
    assert service.toggle_alert(alert.id) is None
    assert service.delete_alert(alert.id) is False


def test_toggle_returns_flipped_alert_when_save_fails(storage, clock, monkeypatch):
    service = CustomAlertService(storage, clock=clock)
    alert = service.create_alert("u1", parse_request("Alert me about Tesla earnings"))

    def failing_save(alert):
        raise PersistenceError("locked")

    monkeypatch.setattr(storage, "save_alert", failing_save)

    toggled = service.toggle_alert(alert.id)
    assert toggled.is_active is False
    assert storage.get_alert(alert.id).is_active is True


def test_process_signals_records_triggers_through_check(storage, clock, make_signal, monkeypatch):
    service = CustomAlertService(storage, clock=clock)
    alert = service.create_alert("u1", parse_request("Alert me about Tesla earnings"))
    checked = []
    original_check = service.check

    def recording_check(signal, active_alerts):
        checked.append(signal.id)
        return original_check(signal, active_alerts)

    monkeypatch.setattr(service, "check", recording_check)
    hit = make_signal("Tesla earnings beat estimates")
    miss = make_signal("Gardening tips")

    matches, notifications = service.process_signals("u1", [hit, miss])

    assert checked == [hit.id, miss.id]
    assert [(m.alert_id, m.signal_id) for m in matches] == [(alert.id, hit.id)]
    assert matches[0].match_score == pytest.approx(1.0)
    assert len(notifications) == 1
    assert storage.get_alert(alert.id).triggered_count == 1
