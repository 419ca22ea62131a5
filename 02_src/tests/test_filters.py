"""Tests for conversation list filters."""

import pytest

from helpdesk.models import ConversationStatus, ConversationType, Priority
from helpdesk.sync import ConversationFilter

from conftest import make_conversation


@pytest.fixture
def conversations():
    return [
        make_conversation(
            "c1",
            subject="GAR submit button disabled",
            user_name="Engineer Ruiz",
            user_email="ruiz@station7.example",
            type=ConversationType.BUG,
            priority=Priority.HIGH,
        ),
        make_conversation(
            "c2",
            subject="Hydrant section",
            user_name="Captain Okafor",
            type=ConversationType.FEATURE,
            priority=Priority.LOW,
            status=ConversationStatus.RESOLVED,
            last_message="Flow test date please",
        ),
        make_conversation(
            "c3",
            subject="Reports",
            user_name="Lt. Brandt",
            type=ConversationType.HELP,
            status=ConversationStatus.IN_PROGRESS,
        ),
    ]


class TestConversationFilterBuild:
    """Tests for building filters from raw selector values."""

    def test_all_means_no_filter(self):
        f = ConversationFilter.build(search="", type="all", priority="all", status="all")
        assert not f.is_active
        assert f == ConversationFilter()

    def test_raw_values_become_enums(self):
        f = ConversationFilter.build(type="bug", status="in-progress")
        assert f.type is ConversationType.BUG
        assert f.status is ConversationStatus.IN_PROGRESS
        assert f.is_active

    def test_unknown_value_raises(self):
        with pytest.raises(ValueError):
            ConversationFilter.build(priority="critical")

    def test_search_is_trimmed(self):
        assert ConversationFilter.build(search="  gar ").search == "gar"

    def test_cleared(self):
        f = ConversationFilter.build(search="x", type="bug")
        assert not f.cleared().is_active


class TestConversationFilterApply:
    """Tests for matching conversations."""

    def test_no_filter_keeps_everything(self, conversations):
        assert ConversationFilter().apply(conversations) == conversations

    @pytest.mark.parametrize(
        "search, expected",
        [
            ("submit", ["c1"]),  # subject
            ("OKAFOR", ["c2"]),  # user name, case-insensitive
            ("station7", ["c1"]),  # email
            ("flow test", ["c2"]),  # last message
            ("nothing like this", []),
        ],
    )
    def test_search_fields(self, conversations, search, expected):
        f = ConversationFilter.build(search=search)
        assert [c.id for c in f.apply(conversations)] == expected

    def test_selectors_combine(self, conversations):
        f = ConversationFilter.build(type="feature", status="resolved")
        assert [c.id for c in f.apply(conversations)] == ["c2"]

        f = ConversationFilter.build(type="feature", status="open")
        assert f.apply(conversations) == []

    def test_priority(self, conversations):
        f = ConversationFilter.build(priority="medium")
        assert [c.id for c in f.apply(conversations)] == ["c3"]

    def test_order_preserved(self, conversations):
        f = ConversationFilter.build(status="all", search="e")
        ids = [c.id for c in f.apply(conversations)]
        assert ids == sorted(ids)
