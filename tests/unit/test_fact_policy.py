"""
Unit tests for the fact admission policy and transient filter.
"""
import pytest

from rag_memory.memory.policy import (
    TRANSIENT_PATTERNS,
    FactQualityPolicy,
    is_transient,
    never_noisy,
    transient_reason,
)
from rag_memory.memory.schemas import RawFact


@pytest.mark.parametrize(
    "text",
    [
        "Has a dentist appointment today",
        "Going hiking tomorrow with friends",
        "Felt tired yesterday after work",
        "Busy with deadlines this week",
        "Travelling to Berlin next week",
        "Is hungry right now",
        "Is currently looking for a job",
        "Asked: can you recommend a book",
        "Wants you to help me write an email",
        "Asked what is the capital of Peru",
        "Asked how do I reset a router",
    ],
)
def test_transient_phrases(text):
    assert is_transient(text)


@pytest.mark.parametrize(
    "text",
    [
        "Works as a structural engineer in Seattle",
        "Prefers vegetarian food",
        "Is learning Japanese",
        # Word boundaries: "todays" and "nowhere" are not matches
        "Collects todayshow memorabilia from nowhere",
    ],
)
def test_durable_phrases(text):
    assert not is_transient(text)


def test_transient_is_case_insensitive():
    assert transient_reason("Meeting TODAY at noon") == "relative_day"
    assert transient_reason("Right Now they are busy") == "immediate_time"
    assert transient_reason("Can You check this") == "meta_request"


def test_pattern_table_labels():
    labels = [label for label, _ in TRANSIENT_PATTERNS]
    assert labels == ["relative_day", "immediate_time", "meta_request"]


def test_low_salience_rejected_high_admitted():
    policy = FactQualityPolicy()
    assert not policy.admit(RawFact(content="I like cats", salience=0.5))
    assert policy.admit(RawFact(content="I work as a structural engineer in Seattle", salience=0.75))


@pytest.mark.parametrize(
    "fact, reason",
    [
        (RawFact(content="", salience=0.9), "empty"),
        (RawFact(content="Likes tea", salience=0.9), "too_short"),
        (RawFact(content="Enjoys long distance running", salience=0.59), "low_salience"),
        (RawFact(content="Enjoys long distance running", salience=None), "low_salience"),
        (RawFact(content="Enjoys long distance running", salience=float("nan")), "low_salience"),
        (RawFact(content="Is going to the gym tomorrow", salience=0.9), "transient:relative_day"),
    ],
)
def test_rejection_reasons(fact, reason):
    assert FactQualityPolicy().rejection_reason(fact) == reason


def test_boundaries_are_inclusive():
    policy = FactQualityPolicy(min_chars=15, min_salience=0.6)
    assert policy.admit(RawFact(content="x" * 15, salience=0.6))
    assert not policy.admit(RawFact(content="x" * 14, salience=0.6))


def test_noise_filter_hook():
    policy = FactQualityPolicy(noise_filter=lambda text: "lorem" in text.lower())
    assert policy.rejection_reason(RawFact(content="Lorem ipsum dolor sit amet", salience=0.9)) == "noisy"
    assert policy.admit(RawFact(content="Maintains an open source library", salience=0.9))


def test_default_noise_filter_flags_nothing():
    assert never_noisy("Lorem ipsum dolor sit amet") is False
    assert FactQualityPolicy().noise_filter is never_noisy
