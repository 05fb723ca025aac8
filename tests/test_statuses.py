"""Tests for the status graph."""

import json
from dataclasses import FrozenInstanceError

import pytest

from models.purchasing import ItemColumns as C, TargetUsers
from schemas.statuses import (
    STATUSES,
    TEST_STATUS,
    SlackChannel,
    StatusName,
    get_status,
    is_new_status_allowed,
    status_graph_to_dict,
)


class TestStatusName:
    """Tests for parsing Status cells."""

    def test_blank_is_unset(self):
        """Test blank cells parse as the explicit unset status."""
        assert StatusName.from_cell("") is StatusName.UNSET
        assert StatusName.from_cell("   ") is StatusName.UNSET
        assert StatusName.from_cell(None) is StatusName.UNSET

    def test_trimmed(self):
        """Test surrounding whitespace is ignored."""
        assert StatusName.from_cell(" Submitted ") is StatusName.SUBMITTED

    def test_unknown_text(self):
        """Test unknown or differently-cased text is not a status."""
        assert StatusName.from_cell("Lost") is None
        assert StatusName.from_cell("new") is None


class TestGraph:
    """Tests for the transition graph."""

    def test_allowed_previous(self):
        """Test a sample of edges."""
        assert is_new_status_allowed("", STATUSES["NEW"])
        assert is_new_status_allowed("Awaiting Info", STATUSES["NEW"])
        assert not is_new_status_allowed("Submitted", STATUSES["NEW"])
        assert is_new_status_allowed("New", STATUSES["APPROVED"])
        assert is_new_status_allowed("Received", STATUSES["REIMBURSED"])
        assert not is_new_status_allowed("Denied", STATUSES["SUBMITTED"])

    def test_unset_only_reachable_where_listed(self):
        """Test blank rows can only become New, Received - Awaiting Reimbursement or Test."""
        reachable = {s.key for s in STATUSES.values() if s.allows("")}

        assert reachable == {"NEW", "RECEIVED_REIMBURSE"}
        assert TEST_STATUS.allows("")

    def test_no_self_transitions(self):
        """Test no workflow status may be re-applied to itself."""
        for status in STATUSES.values():
            assert not status.allows(status.text), status.key

    def test_officer_only_statuses(self):
        """Test which statuses are restricted to officers."""
        officer_only = {s.key for s in STATUSES.values() if s.officers_only}

        assert officer_only == {"SUBMITTED", "APPROVED", "AWAITING_PICKUP", "DENIED", "AWAITING_INFO", "REIMBURSED"}

    def test_submitted_columns(self):
        """Test the Submitted status writes officer and submit date, filling defaults."""
        status = STATUSES["SUBMITTED"]

        assert status.user_column == C.OFFICER_EMAIL
        assert status.date_column == C.SUBMIT_DATE
        assert status.fill_in_defaults
        assert status.slack.target_users == TargetUsers.REQUESTORS

    def test_test_status_uses_dev_channel(self):
        """Test the diagnostic status is outside the graph and goes to dev."""
        assert "TEST" not in STATUSES
        assert get_status("test") is TEST_STATUS
        assert TEST_STATUS.slack.channels == (SlackChannel.DEV,)

    def test_unknown_key(self):
        """Test looking up an unknown status fails."""
        with pytest.raises(KeyError):
            get_status("SHIPPED")

    def test_immutable(self):
        """Test statuses and the registry cannot be changed at runtime."""
        with pytest.raises(FrozenInstanceError):
            STATUSES["NEW"].officers_only = True
        with pytest.raises(TypeError):
            STATUSES["NEW2"] = STATUSES["NEW"]

    def test_serializable(self):
        """Test the graph serialises to JSON without webhook URLs."""
        graph = status_graph_to_dict(include_test=True)
        text = json.dumps(graph)

        assert len(graph["statuses"]) == 10
        assert {"from": "", "to": "New"} in graph["edges"]
        assert "hooks.slack" not in text
