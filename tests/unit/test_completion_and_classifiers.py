import pytest

from app.features.profile_engagement.domain import ProfileReference
from app.features.profile_engagement.pipeline.scoring.classifiers import (
    availability_family,
    count_pipeline_wins,
    is_interview_stage,
    is_pipeline_win,
    is_volunteer_highlight,
    launchpad_status_score,
    normalize_flags,
)
from app.features.profile_engagement.pipeline.scoring.completion import (
    COMPLETION_CHECKLIST,
    completion_checklist,
    estimate_completion,
    is_availability_actionable,
)


def _complete_profile(make_profile):
    return make_profile(
        headline="Product designer",
        bio="Ten years of shipping design systems.",
        mission_statement="Make hiring fair.",
        education="BA Design",
        location="Lisbon",
        skills=["figma", "research"],
        areas_of_focus=["fintech"],
        experience_entries=[{"company": "Acme"}],
        qualifications=["UX certificate"],
        portfolio_links=["https://example.com"],
        preferred_engagements=["contract"],
        status_flags=["verified"],
        volunteer_badges=["mentor"],
        collaboration_roster=[{"name": "Sam"}],
        impact_highlights=[{"title": "Redesign"}],
        pipeline_insights=[{"status": "won"}],
        availability_status="available",
        available_hours_per_week=20,
    )


def test_checklist_has_eighteen_items_in_order():
    keys = [key for key, _ in COMPLETION_CHECKLIST]

    assert len(keys) == 18
    assert keys[0] == "headline"
    assert keys[-1] == "availability"


def test_complete_profile_scores_one_hundred(make_profile):
    profile = _complete_profile(make_profile)

    assert estimate_completion(profile, [ProfileReference()]) == 100.0


def test_single_item_rounds_to_two_decimals(make_profile):
    profile = make_profile(headline="Designer")

    assert estimate_completion(profile, []) == 5.56


def test_empty_profile_scores_zero(make_profile):
    profile = make_profile(availability_status="limited", available_hours_per_week=0)

    checklist = completion_checklist(profile, [])

    assert not any(checklist.values())
    assert estimate_completion(profile, []) == 0.0


def test_whitespace_and_empty_entries_do_not_count(make_profile):
    profile = make_profile(headline="   ", skills=["", None], bio="")

    checklist = completion_checklist(profile, [])

    assert checklist["headline"] is False
    assert checklist["skills"] is False
    assert checklist["bio"] is False


@pytest.mark.parametrize(
    "status,hours,expected",
    [
        ("available", 10, True),
        ("limited", 40, False),
        ("available", 0, False),
        (None, 5, True),
        ("open", "abc", False),
    ],
)
def test_availability_actionable(status, hours, expected):
    assert is_availability_actionable(status, hours) is expected


@pytest.mark.parametrize(
    "status,expected",
    [
        ("Won", True),
        ("contract signed", True),
        ("Offer accepted", True),
        ("winning pitch drafted", False),
        ("in review", False),
        (None, False),
    ],
)
def test_pipeline_win_keywords(status, expected):
    assert is_pipeline_win({"status": status}) is expected


def test_interview_stage_matches_status():
    assert is_interview_stage({"status": "Final round"})
    assert is_interview_stage({"status": "Shortlisted"})
    assert not is_interview_stage({"status": "Applied"})


def test_volunteer_highlight_checks_title_and_description():
    assert is_volunteer_highlight({"title": "Pro bono rebrand", "description": ""})
    assert is_volunteer_highlight({"title": "Workshop", "description": "Nonprofit partner"})
    assert not is_volunteer_highlight({"title": "Enterprise migration"})


def test_count_pipeline_wins_ignores_non_wins():
    pipeline = [{"status": "won"}, {"status": "lost"}, {"status": "Hired"}, {}]

    assert count_pipeline_wins(pipeline) == 2


@pytest.mark.parametrize(
    "status,expected",
    [
        ("Graduated", 1.0),
        ("In Progress", 0.7),
        ("eligible", 0.9),
        ("something-new", 0.3),
        ("", 0.0),
        (None, 0.0),
    ],
)
def test_launchpad_status_score(status, expected):
    assert launchpad_status_score(status) == expected


def test_availability_family_normalizes_tokens():
    assert availability_family("Open to work") == "available"
    assert availability_family("LIMITED") == "limited"
    assert availability_family("fully-booked") == "unavailable"
    assert availability_family("sabbatical") is None


def test_normalize_flags_drops_blanks():
    assert normalize_flags(["Preferred Talent", "", None, "instant-book"]) == {
        "preferred_talent",
        "instant_book",
    }
