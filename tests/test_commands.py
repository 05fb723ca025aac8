"""Tests for the command registry."""

from dataclasses import replace

import pytest

from conftest import ADMIN, PROJECT_SHEET, new_item
from models.purchasing import ItemColumns as C, RowRange, User
from schemas.statuses import STATUSES
from services.commands import Command, CommandContext, CommandOutcome, CommandRegistry, Feedback


class TestRegistry:
    """Tests for registration and lookup."""

    def test_default_commands(self, services):
        """Test every status gets its mark and fast-forward commands."""
        ids = {c.id for c in services.commands.all()}

        assert "mark_all_new" in ids
        assert "mark_selected_received_reimburse" in ids
        assert "fast_forward_selected_reimbursed" in ids
        assert "test_update_selected" in ids
        assert "refresh_protections" in ids
        assert len(ids) == 21

    def test_duplicate_id(self):
        """Test registering the same id twice fails."""
        registry = CommandRegistry()
        command = Command(id="x", label="X", handler=lambda context: CommandOutcome("ok"))
        registry.register(command)

        with pytest.raises(ValueError):
            registry.register(command)

    def test_unknown_id(self, services):
        with pytest.raises(KeyError):
            services.commands.get("launch_rocket")

    def test_available_for_member(self, services):
        """Test members only see commands open to everyone."""
        member = User(email="m@example.com", full_name="M", slack_id="U1")

        ids = {c.id for c in services.commands.available_for(member)}

        assert ids == {"mark_all_new", "mark_selected_new", "mark_selected_received", "mark_selected_received_reimburse"}

    def test_available_for_admin(self, services):
        """Test admin commands are listed only for the admin."""
        officer = User(email="o@example.com", full_name="O", slack_id="U2", is_financial_officer=True)

        assert "refresh_protections" not in {c.id for c in services.commands.available_for(officer)}
        assert "refresh_protections" in {c.id for c in services.commands.available_for(officer, is_admin=True)}


class TestRun:
    """Tests for running commands."""

    def test_success(self, services, add_rows, member_session):
        """Test a successful command reports its result."""
        add_rows(new_item(status=""))
        feedback = Feedback()

        outcome = services.commands.run("mark_all_new", CommandContext(PROJECT_SHEET, member_session), feedback)

        assert outcome.result.count == 1
        assert feedback.messages[-1][0] == "success"
        assert not feedback.has_errors

    def test_confirmation_declined(self, services, store, add_rows, member_session):
        """Test declining the confirmation leaves the sheet untouched."""
        rows = add_rows(new_item(request_comments="paypal@example.com"))
        feedback = Feedback()
        context = CommandContext(PROJECT_SHEET, member_session, [RowRange(rows[0], 1)], confirm=lambda prompt: False)

        outcome = services.commands.run("mark_selected_received_reimburse", context, feedback)

        assert outcome is None
        assert feedback.messages == [("warning", "Action cancelled.")]
        assert store.column_writes == []

    def test_confirmation_accepted(self, services, store, add_rows, member_session):
        """Test accepting the confirmation runs the transition."""
        rows = add_rows(new_item(request_comments="paypal@example.com"))
        prompts = []

        def confirm(prompt):
            prompts.append(prompt)
            return True

        context = CommandContext(PROJECT_SHEET, member_session, [RowRange(rows[0], 1)], confirm=confirm)

        outcome = services.commands.run("mark_selected_received_reimburse", context, Feedback())

        assert outcome.result.count == 1
        assert prompts[0].startswith("NOTE: Reimbursements are not guaranteed")
        assert store.cell(PROJECT_SHEET, rows[0], C.STATUS) == "Received - Awaiting Reimbursement"

    def test_error_becomes_feedback(self, services, add_rows, member_session):
        """Test engine errors are reported instead of raised."""
        rows = add_rows(new_item())
        feedback = Feedback()
        context = CommandContext(PROJECT_SHEET, member_session, [RowRange(rows[0], 1)])

        outcome = services.commands.run("mark_selected_submitted", context, feedback)

        assert outcome is None
        assert feedback.has_errors
        assert feedback.messages[-1][1].startswith("Only financial officers may")

    def test_validation_error_keeps_warnings(self, services, store, add_rows, officer_session):
        """Test warnings are reported alongside a blocking validation error."""
        strict = replace(STATUSES["SUBMITTED"], key="STRICT_SUBMITTED", required_columns=(C.REQUEST_COMMENTS,))
        services.commands.register(Command(
            id="strict_submit",
            label="Submit with comments",
            handler=lambda context: CommandOutcome(
                "", result=services.executor.mark_items(strict, context.sheet, context.session, context.selection)
            ),
        ))
        rows = add_rows(new_item(account=""))
        feedback = Feedback()
        context = CommandContext(PROJECT_SHEET, officer_session, [RowRange(rows[0], 1)])

        outcome = services.commands.run("strict_submit", context, feedback)

        assert outcome is None
        assert [level for level, _ in feedback.messages] == ["warning", "error"]
        assert '"Purchasing Account"' in feedback.messages[0][1]
        assert '"Request Comments"' in feedback.messages[1][1]
        assert feedback.messages[1][1].endswith("No items were marked.")
        assert store.column_writes == []

    def test_notification_failure_reports_marked_rows(self, services, store, add_rows, member_session, slack_client):
        """Test rows marked before a notification failure are still reported as marked."""
        rows = add_rows(new_item(status=""))
        del store.named_ranges["NotifyApprovedOfficers"]
        feedback = Feedback()
        context = CommandContext(PROJECT_SHEET, member_session, [RowRange(rows[0], 1)])

        outcome = services.commands.run("mark_selected_new", context, feedback)

        assert outcome is None
        assert feedback.messages[0] == ("success", '1 items marked from " " or "Awaiting Info" to "New".')
        assert feedback.messages[-1][0] == "error"
        assert feedback.messages[-1][1].startswith("Slack notification failed:")
        assert store.cell(PROJECT_SHEET, rows[0], C.STATUS) == "New"

    def test_refresh_protections_as_admin(self, services, store):
        """Test the admin can refresh protections through the registry."""
        feedback = Feedback()
        context = CommandContext(PROJECT_SHEET, services.session_for(ADMIN))

        outcome = services.commands.run("refresh_protections", context, feedback)

        assert outcome.result == [PROJECT_SHEET]
        assert feedback.messages[-1] == ("success", "Updated protections for 1 sheet(s).")
