import json

import pytest

from authority_audit.normalizer import (
    FALLBACK_ACTIONS,
    FALLBACK_INTERPRETATION,
    FALLBACK_SUMMARY,
    MalformedCompletion,
    coerce_score,
    compute_overall,
    derive_badge,
    extract_json_object,
    normalize,
)
from authority_audit.schemas import WEIGHT_PROFILES, Badge, ScoreWeights

AUTHORITY = WEIGHT_PROFILES["authority"]
BALANCED = WEIGHT_PROFILES["balanced"]

COMPLETE = {
    "clarity": 90,
    "credibility": 80,
    "visibility": 70,
    "interpretation": "Great job",
    "summary": "Good work overall.",
    "actions": ["Do X"],
}


def test_end_to_end_example():
    report = normalize(json.dumps(COMPLETE), AUTHORITY)

    assert report.clarity == 90
    assert report.credibility == 80
    assert report.visibility == 70
    assert report.overall == 81
    assert report.badge is Badge.STRONG
    assert report.interpretation == "Great job"
    assert report.summary == "Good work overall."
    assert report.actions == ("Do X",)


def test_overall_and_badge_from_input_are_ignored():
    raw = json.dumps({**COMPLETE, "overall": 12, "badge": "AUTHORITY LEADER"})
    report = normalize(raw, AUTHORITY)

    assert report.overall == 81
    assert report.badge is Badge.STRONG


def test_balanced_weights():
    raw = json.dumps({**COMPLETE, "clarity": 75, "credibility": 80, "visibility": 65})
    report = normalize(raw, BALANCED)

    # 24.75 + 26.4 + 22.1 = 73.25
    assert report.overall == 73
    assert report.badge is Badge.STRONG


@pytest.mark.parametrize(
    "scores",
    [(0, 0, 0), (100, 100, 100), (1, 2, 3), (99, 98, 97), (33, 66, 99), (50, 51, 49)],
)
def test_overall_is_bounded_weighted_sum(scores):
    for weights in WEIGHT_PROFILES.values():
        overall = compute_overall(*scores, weights)
        assert 0 <= overall <= 100
        exact = (
            scores[0] * weights.clarity
            + scores[1] * weights.credibility
            + scores[2] * weights.visibility
        )
        assert abs(overall - exact) <= 0.5 + 1e-9


def test_overall_rounds_half_up():
    weights = ScoreWeights(clarity=0.5, credibility=0.5, visibility=0.0)
    assert compute_overall(60, 61, 0, weights) == 61


@pytest.mark.parametrize(
    "overall, badge",
    [
        (100, Badge.EXCEPTIONAL),
        (85, Badge.EXCEPTIONAL),
        (84, Badge.STRONG),
        (70, Badge.STRONG),
        (69, Badge.SOLID_FOUNDATION),
        (55, Badge.SOLID_FOUNDATION),
        (54, Badge.NEEDS_REFINEMENT),
        (40, Badge.NEEDS_REFINEMENT),
        (39, Badge.REQUIRES_ATTENTION),
        (0, Badge.REQUIRES_ATTENTION),
    ],
)
def test_badge_thresholds_are_inclusive_low(overall, badge):
    assert derive_badge(overall) is badge


@pytest.mark.parametrize(
    "value, expected",
    [
        (150, 50),
        (-1, 50),
        ("abc", 50),
        (None, 50),
        (True, 50),
        ([70], 50),
        (float("nan"), 50),
        ("72", 72),
        (" 64.4 ", 64),
        (72.5, 73),
        (100, 100),
        (0, 0),
    ],
)
def test_coerce_score(value, expected):
    assert coerce_score(value) == expected


def test_out_of_range_and_non_numeric_scores_are_defaulted():
    raw = json.dumps({**COMPLETE, "clarity": 150, "credibility": "abc"})
    report = normalize(raw, AUTHORITY)

    assert report.clarity == 50
    assert report.credibility == 50


def test_fenced_completion_matches_plain_json():
    plain = json.dumps(COMPLETE)
    fenced = f"```json\n{plain}\n```"

    assert normalize(fenced, AUTHORITY) == normalize(plain, AUTHORITY)


def test_prose_around_payload_is_discarded():
    raw = f"Here is the audit you asked for:\n{json.dumps(COMPLETE)}\nLet me know!"
    assert normalize(raw, AUTHORITY).overall == 81


def test_trailing_prose_with_braces_falls_back_to_first_object():
    raw = json.dumps(COMPLETE) + "\nNote: scores use the {0-100} scale."
    assert extract_json_object(raw)["clarity"] == 90


def test_normalize_is_idempotent():
    raw = "```\n" + json.dumps({**COMPLETE, "actions": []}) + "\n```"
    assert normalize(raw, BALANCED) == normalize(raw, BALANCED)


@pytest.mark.parametrize(
    "raw",
    ["not json at all", "", "{not: valid json}", "} backwards {", "[1, 2, 3]"],
)
def test_unparseable_completion_raises(raw):
    with pytest.raises(MalformedCompletion) as excinfo:
        normalize(raw, AUTHORITY)
    assert excinfo.value.text == raw


def test_missing_fields_use_fallbacks():
    report = normalize("{}", AUTHORITY)

    assert (report.clarity, report.credibility, report.visibility) == (50, 50, 50)
    assert report.overall == 50
    assert report.badge is Badge.NEEDS_REFINEMENT
    assert report.interpretation == FALLBACK_INTERPRETATION
    assert report.summary == FALLBACK_SUMMARY
    assert report.actions == FALLBACK_ACTIONS


@pytest.mark.parametrize("actions", [None, [], "Do X", ["", "  ", 3], {"a": "b"}])
def test_invalid_actions_use_fallback(actions):
    raw = json.dumps({**COMPLETE, "actions": actions})
    report = normalize(raw, AUTHORITY)

    assert report.actions == FALLBACK_ACTIONS
    assert len(report.actions) >= 1


def test_blank_text_fields_use_fallbacks():
    raw = json.dumps({**COMPLETE, "interpretation": "   ", "summary": 42})
    report = normalize(raw, AUTHORITY)

    assert report.interpretation == FALLBACK_INTERPRETATION
    assert report.summary == FALLBACK_SUMMARY


def test_legacy_field_names_are_coalesced():
    legacy = {
        "clarity": 60,
        "credibility": 60,
        "visibility": 60,
        "strategicAudit": "Solid base, unclear offer.",
        "designAnalysis": "The layout is clean.",
        "actions": ["Tighten the headline"],
    }
    report = normalize(json.dumps(legacy), AUTHORITY)

    assert report.interpretation == "Solid base, unclear offer."
    assert report.summary == "The layout is clean."


def test_custom_aliases():
    raw = json.dumps({"headline": "Custom", "clarity": 70})
    report = normalize(raw, AUTHORITY, aliases={"interpretation": ("headline",)})

    assert report.interpretation == "Custom"
    assert report.summary == FALLBACK_SUMMARY


def test_report_is_immutable():
    report = normalize(json.dumps(COMPLETE), AUTHORITY)
    with pytest.raises(Exception):
        report.overall = 10


@pytest.mark.parametrize(
    "weights",
    [
        {"clarity": 0.5, "credibility": 0.5, "visibility": 0.5},
        {"clarity": 1.2, "credibility": -0.1, "visibility": -0.1},
    ],
)
def test_invalid_weights_are_rejected(weights):
    with pytest.raises(ValueError):
        ScoreWeights(**weights)


def test_huge_integer_score_is_defaulted():
    raw = '{"clarity": ' + "9" * 5000 + ', "credibility": 80, "visibility": 70}'
    report = normalize(raw, AUTHORITY)

    assert report.clarity == 50
    assert report.credibility == 80
    assert report.visibility == 70


def test_deeply_nested_completion_is_malformed():
    raw = '{"clarity": ' + "[" * 100000 + "]" * 100000 + "}"

    with pytest.raises(MalformedCompletion) as excinfo:
        normalize(raw, AUTHORITY)
    assert excinfo.value.text == raw


def test_blank_alias_falls_through_to_next():
    raw = json.dumps(
        {
            "interpretation": "",
            "strategicAudit": "Real text",
            "summary": None,
            "designAnalysis": "  The layout is clean.  ",
        }
    )
    report = normalize(raw, AUTHORITY)

    assert report.interpretation == "Real text"
    assert report.summary == "The layout is clean."


def test_unusable_action_alias_falls_through_to_next():
    raw = json.dumps({"actions": [], "steps": ["Publish a case study"]})
    report = normalize(raw, AUTHORITY, aliases={"actions": ("actions", "steps")})

    assert report.actions == ("Publish a case study",)
