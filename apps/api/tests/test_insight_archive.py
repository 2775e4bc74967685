"""
Archive store: ownership isolation, ordering, editing rules, search and the
bounded context window.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from models import DEFAULT_FOLDER
from services import insight_archive
from tests.helpers import make_user

BASE_TIME = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ticking_clock(monkeypatch):
    """Each archive call is one minute after the previous one."""
    ticks = {"n": 0}

    def _now():
        ticks["n"] += 1
        return BASE_TIME + timedelta(minutes=ticks["n"])

    monkeypatch.setattr(insight_archive, "_utcnow", _now)
    return _now


def _archive(db, user_id, title="Insight", **kwargs):
    fields = dict(
        title=title,
        analysis=f"Analysis for {title}",
        data_snapshot={"relationships": 1},
        generated_at=BASE_TIME,
        tags=["calm"],
    )
    fields.update(kwargs)
    return insight_archive.archive(db, user_id, **fields)


def _naive(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


def test_archive_defaults_and_cleanup(db_session, ticking_clock):
    user = make_user(db_session)

    insight = _archive(db_session, user.id, title="  Spring  ", tags=[" a ", "a", "", "b"], folder_name="  ")

    assert insight.title == "Spring"
    assert insight.tags == ["a", "b"]
    assert insight.folder_name == DEFAULT_FOLDER
    assert insight.data_snapshot == {"relationships": 1}


def test_future_generated_at_is_clamped_to_archived_at(db_session, ticking_clock):
    user = make_user(db_session)

    insight = _archive(db_session, user.id, generated_at=BASE_TIME + timedelta(days=2))

    assert _naive(insight.generated_at) <= _naive(insight.archived_at)
    assert _naive(insight.generated_at) == _naive(insight.archived_at)


def test_naive_generated_at_treated_as_utc(db_session, ticking_clock):
    user = make_user(db_session)

    insight = _archive(db_session, user.id, generated_at=datetime(2026, 3, 1, 8, 30))

    assert _naive(insight.generated_at) == datetime(2026, 3, 1, 8, 30)


def test_list_is_newest_first_and_owner_scoped(db_session, ticking_clock):
    alice = make_user(db_session)
    bob = make_user(db_session)
    _archive(db_session, alice.id, title="first")
    _archive(db_session, bob.id, title="bob's")
    _archive(db_session, alice.id, title="second")

    titles = [i.title for i in insight_archive.list_insights(db_session, alice.id)]

    assert titles == ["second", "first"]


class TestOwnershipIsolation:
    def test_get_other_users_insight_is_none(self, db_session, ticking_clock):
        alice = make_user(db_session)
        bob = make_user(db_session)
        insight = _archive(db_session, alice.id)

        assert insight_archive.get_insight(db_session, insight.id, bob.id) is None
        assert insight_archive.get_insight(db_session, insight.id, alice.id) is not None

    def test_update_by_other_user_changes_nothing(self, db_session, ticking_clock):
        alice = make_user(db_session)
        bob = make_user(db_session)
        insight = _archive(db_session, alice.id, title="Mine")

        assert insight_archive.update_insight(db_session, insight.id, bob.id, title="Stolen") is None

        db_session.expire_all()
        assert insight_archive.get_insight(db_session, insight.id, alice.id).title == "Mine"

    def test_delete_by_other_user_changes_nothing(self, db_session, ticking_clock):
        alice = make_user(db_session)
        bob = make_user(db_session)
        insight = _archive(db_session, alice.id)

        assert insight_archive.delete_insight(db_session, insight.id, bob.id) is False
        assert insight_archive.get_insight(db_session, insight.id, alice.id) is not None

    def test_delete_unknown_id(self, db_session):
        user = make_user(db_session)
        assert insight_archive.delete_insight(db_session, uuid4(), user.id) is False

    def test_context_window_never_includes_other_users(self, db_session, ticking_clock):
        alice = make_user(db_session)
        bob = make_user(db_session)
        _archive(db_session, bob.id, title="bob only")

        assert insight_archive.context_window(db_session, alice.id) == []


def test_update_only_touches_editable_fields(db_session, ticking_clock):
    user = make_user(db_session)
    insight = _archive(db_session, user.id, title="Old")
    original_analysis = insight.analysis

    updated = insight_archive.update_insight(
        db_session, insight.id, user.id, title="New", tags=["x", "x", "y"], folder_name="Work"
    )

    assert updated.title == "New"
    assert updated.tags == ["x", "y"]
    assert updated.folder_name == "Work"
    assert updated.analysis == original_analysis


def test_delete_removes_record(db_session, ticking_clock):
    user = make_user(db_session)
    insight = _archive(db_session, user.id)

    assert insight_archive.delete_insight(db_session, insight.id, user.id) is True
    assert insight_archive.get_insight(db_session, insight.id, user.id) is None


def test_search_matches_title_analysis_and_tags_case_insensitively(db_session, ticking_clock):
    user = make_user(db_session)
    _archive(db_session, user.id, title="Summer Reflections", tags=["beach"])
    _archive(db_session, user.id, title="Work", analysis="Thoughts about CAREER", tags=[])
    _archive(db_session, user.id, title="Other", tags=["Family"])

    assert [i.title for i in insight_archive.search(db_session, user.id, "summer")] == ["Summer Reflections"]
    assert [i.title for i in insight_archive.search(db_session, user.id, "career")] == ["Work"]
    assert [i.title for i in insight_archive.search(db_session, user.id, "FAMILY")] == ["Other"]
    assert len(insight_archive.search(db_session, user.id, "  ")) == 3


def test_folders_and_by_folder(db_session, ticking_clock):
    user = make_user(db_session)
    _archive(db_session, user.id, title="a", folder_name="Love")
    _archive(db_session, user.id, title="b")
    _archive(db_session, user.id, title="c", folder_name="Love")

    assert insight_archive.folders(db_session, user.id) == {"Love", DEFAULT_FOLDER}
    assert [i.title for i in insight_archive.by_folder(db_session, user.id, "Love")] == ["c", "a"]
    assert insight_archive.by_folder(db_session, user.id, "Nowhere") == []


def test_search_within_folder(db_session, ticking_clock):
    user = make_user(db_session)
    _archive(db_session, user.id, title="Trip with Sam", folder_name="Love")
    _archive(db_session, user.id, title="Trip alone")

    assert [i.title for i in insight_archive.search(db_session, user.id, "trip", folder_name="Love")] == ["Trip with Sam"]
    assert len(insight_archive.search(db_session, user.id, "trip")) == 2


class TestContextWindow:
    def test_bounded_and_newest_first(self, db_session, ticking_clock):
        user = make_user(db_session)
        for i in range(7):
            _archive(db_session, user.id, title=f"n{i}")

        window = insight_archive.context_window(db_session, user.id)

        assert [entry["title"] for entry in window] == ["n6", "n5", "n4", "n3", "n2"]

    def test_custom_limit(self, db_session, ticking_clock):
        user = make_user(db_session)
        for i in range(3):
            _archive(db_session, user.id, title=f"n{i}")

        assert len(insight_archive.context_window(db_session, user.id, limit=2)) == 2
        assert insight_archive.context_window(db_session, user.id, limit=0) == []

    def test_analysis_capped_at_1000_chars(self, db_session, ticking_clock):
        user = make_user(db_session)
        _archive(db_session, user.id, analysis="y" * 1500)

        entry = insight_archive.context_window(db_session, user.id)[0]

        assert len(entry["analysis"]) == 1000
        assert set(entry) == {"title", "date", "analysis", "tags"}
        assert entry["tags"] == ["calm"]
