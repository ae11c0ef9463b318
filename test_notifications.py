"""Tests for interest matching and notification generation."""

from datetime import timedelta

import pytest

from conftest import BASE_TIME
from signal_alerts.interests import filter_by_interests, matched_interest, matches
from signal_alerts.models import Notification, UserInterestProfile
from signal_alerts.notifications import (
    NotificationGenerator,
    determine_urgency,
    merge_notifications,
    notification_summary,
)


# Interest matching

def test_interest_matches_tag_containing_interest(make_signal):
    signal = make_signal("Chip news", tags=["technology"])
    assert matches(signal, ["tech"])


def test_interest_matches_interest_containing_tag(make_signal):
    signal = make_signal("Chip news", tags=["AI"])
    assert matches(signal, ["ai research"])


def test_interest_match_is_case_insensitive(make_signal):
    assert matches(make_signal("Chip news", tags=["artificial-intelligence-ai"]), ["AI"])
    assert not matches(make_signal("Chip news", tags=["machine-learning"]), ["AI"])


def test_interest_matches_title_and_summary(make_signal):
    signal = make_signal("Quarterly results", summary="Crypto markets rally")
    assert matches(signal, ["CRYPTO"])
    assert not matches(signal, ["sports"])


def test_matched_interest_uses_declared_order(make_signal):
    signal = make_signal("Tech and finance", tags=["Finance", "Tech"])
    assert matched_interest(signal, ["Tech", "Finance"]) == "Tech"
    assert matched_interest(signal, ["Health"]) is None


def test_filter_by_interests(make_signal):
    keep = make_signal("Space launch", tags=["Science"])
    drop = make_signal("Cooking tips")
    assert filter_by_interests([keep, drop], ["science"]) == [keep]
    assert filter_by_interests([keep, drop], []) == []


# Urgency

@pytest.mark.parametrize(
    "score,expected",
    [(0.90, "medium"), (0.901, "high"), (0.70, "low"), (0.701, "medium")],
)
def test_urgency_boundaries(make_signal, score, expected):
    assert determine_urgency(make_signal(relevance_score=score)) == expected


def test_urgency_breaking_tag(make_signal):
    assert determine_urgency(make_signal(relevance_score=0.1, tags=["BREAKING-news"])) == "high"
    assert determine_urgency(make_signal(relevance_score=0.1, tags=["Urgent"])) == "high"


# Generation

def test_generate_builds_notification_fields(make_signal, clock):
    signal = make_signal("Chip shortage eases", summary="Supply improves", tags=["tech"], relevance_score=0.8)
    profile = UserInterestProfile("u1", interests=["tech"])

    [notification] = NotificationGenerator(clock=clock).generate(profile, [signal])

    assert notification.title == "Tech Update"
    assert notification.message == "Supply improves"
    assert notification.category == "tech"
    assert notification.urgency == "medium"
    assert notification.signal_id == signal.id
    assert notification.read is False
    assert notification.timestamp == BASE_TIME


def test_generate_message_falls_back_to_title(make_signal, clock):
    signal = make_signal("Tech giants merge", summary="")
    [notification] = NotificationGenerator(clock=clock).generate(
        UserInterestProfile("u1", interests=["tech"]), [signal]
    )
    assert notification.message == "Tech giants merge"


def test_generate_returns_empty_without_interests_or_signals(make_signal, clock):
    generator = NotificationGenerator(clock=clock)
    assert generator.generate(UserInterestProfile("u1"), [make_signal()]) == []
    assert generator.generate(UserInterestProfile("u1", interests=["tech"]), []) == []


def test_generate_skips_unmatched_and_deduplicates(make_signal, clock):
    signal = make_signal("Tech wrap-up", tags=["tech"])
    unrelated = make_signal("Gardening advice")
    notifications = NotificationGenerator(clock=clock).generate(
        UserInterestProfile("u1", interests=["tech"]), [signal, signal, unrelated]
    )
    assert [n.signal_id for n in notifications] == [signal.id]


def test_breaking_only_skips_low_urgency(make_signal, clock):
    low = make_signal("Tech note", relevance_score=0.2)
    high = make_signal("Tech alert", relevance_score=0.95)
    notifications = NotificationGenerator(breaking_only=True, clock=clock).generate(
        UserInterestProfile("u1", interests=["tech"]), [low, high]
    )
    assert [n.signal_id for n in notifications] == [high.id]


def test_rate_limit_window(make_signal, storage, clock):
    generator = NotificationGenerator(storage, clock=clock)
    profile = UserInterestProfile("u1", interests=["tech"])
    signals = [make_signal("Tech story", tags=["tech"])]

    assert generator.generate(profile, signals)
    assert storage.get_last_notification_gen_time("u1") == BASE_TIME

    clock.advance(minutes=10)
    assert generator.generate(profile, signals) == []

    clock.advance(minutes=51)
    assert generator.generate(profile, signals)
    assert storage.get_last_notification_gen_time("u1") == BASE_TIME + timedelta(minutes=61)


def test_rate_limit_not_started_by_empty_generation(make_signal, storage, clock):
    generator = NotificationGenerator(storage, clock=clock)
    profile = UserInterestProfile("u1", interests=["tech"])

    assert generator.generate(profile, [make_signal("Gardening")]) == []
    assert storage.get_last_notification_gen_time("u1") is None

    clock.advance(minutes=1)
    assert generator.generate(profile, [make_signal("Tech story")])


def test_rate_limit_is_per_user(make_signal, storage, clock):
    generator = NotificationGenerator(storage, clock=clock)
    signals = [make_signal("Tech story")]
    assert generator.generate(UserInterestProfile("u1", interests=["tech"]), signals)
    assert generator.generate(UserInterestProfile("u2", interests=["tech"]), signals)


def test_generate_persists_notifications(make_signal, storage, clock):
    generator = NotificationGenerator(storage, clock=clock)
    generated = generator.generate(UserInterestProfile("u1", interests=["tech"]), [make_signal("Tech story")])

    stored = storage.get_notifications("u1")
    assert [n.id for n in stored] == [n.id for n in generated]


def test_daily_digest_and_breaking_news(make_signal, clock):
    generator = NotificationGenerator(clock=clock)
    profile = UserInterestProfile("u1", interests=["tech", "finance", "health", "sports"])
    signals = [make_signal(f"Tech item {i}", relevance_score=i / 10) for i in range(7)]

    digest = generator.daily_digest(profile, signals)
    assert digest.message == "5 signals today from your interests: tech, finance, health"
    assert digest.category == "Digest"
    assert digest.urgency == "low"
    assert generator.daily_digest(profile, [make_signal("Gardening")]) is None

    breaking = generator.breaking_news(signals[0])
    assert breaking.urgency == "high"
    assert breaking.category == "Breaking"
    assert breaking.message == signals[0].title


# Merging with persisted notifications

def _notification(nid, minutes, read=False, urgency="low"):
    return Notification(
        id=nid,
        title="t",
        message="m",
        category="General",
        urgency=urgency,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        read=read,
    )


def test_merge_notifications_dedupes_and_sorts_newest_first():
    generated = [_notification("a", 5), _notification("b", 1)]
    persisted = [_notification("a", 0), _notification("c", 3)]

    merged = merge_notifications(generated, persisted)

    assert [n.id for n in merged] == ["a", "c", "b"]
    assert merged[0].timestamp == BASE_TIME + timedelta(minutes=5)


def test_notification_summary_counts():
    notifications = [
        _notification("a", 0, urgency="high"),
        _notification("b", 0, read=True, urgency="medium"),
        _notification("c", 0),
    ]
    assert notification_summary(notifications) == {
        "total": 3, "unread": 2, "high": 1, "medium": 1, "low": 1,
    }
