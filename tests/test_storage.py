"""
Tests for the Storage Gateway.

Tests cover:
- Generated keys on account and message inserts
- Lookups returning success / not_found
- Constraint violations reported as conflict
- Store errors reported as failed and logged through the injected logger
- Delete issuing no DELETE statement for a missing row
"""

import logging

import pytest
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.results import Outcome
from app.schemas import AccountRecord, MessageRecord
from app.storage import StorageGateway, create_db_engine


@pytest.fixture
def statements(db_engine):
    """Record every SQL statement sent to the test engine."""
    executed = []

    def record(conn, cursor, statement, parameters, context, executemany):
        executed.append(statement.strip().upper())

    event.listen(db_engine, "before_cursor_execute", record)
    yield executed
    event.remove(db_engine, "before_cursor_execute", record)


class TestAccounts:
    """Account persistence."""

    def test_insert_account_returns_generated_id(self, gateway):
        result = gateway.insert_account("alice", "good")

        assert result.is_success
        assert result.value == AccountRecord(account_id=1, username="alice", password="good")

    def test_ids_are_assigned_sequentially(self, gateway):
        first = gateway.insert_account("alice", "good")
        second = gateway.insert_account("bob", "pass1")

        assert second.value.account_id == first.value.account_id + 1

    def test_duplicate_username_is_conflict(self, gateway):
        gateway.insert_account("alice", "good")

        result = gateway.insert_account("alice", "other")

        assert result.is_conflict
        assert result.value is None

    def test_get_account_by_username(self, gateway):
        gateway.insert_account("alice", "good")

        result = gateway.get_account_by_username("alice")

        assert result.is_success
        assert result.value.username == "alice"
        assert result.value.password == "good"

    def test_get_account_by_unknown_username(self, gateway):
        result = gateway.get_account_by_username("nobody")

        assert result.outcome is Outcome.NOT_FOUND
        assert result.value is None

    def test_account_exists_by_id(self, gateway):
        account = gateway.insert_account("alice", "good").value

        assert gateway.account_exists_by_id(account.account_id).value is True
        assert gateway.account_exists_by_id(account.account_id + 1).value is False

    def test_account_exists_projects_key_only(self, gateway, statements):
        gateway.account_exists_by_id(1)

        select = next(s for s in statements if s.startswith("SELECT"))
        assert "PASSWORD" not in select
        assert "USERNAME" not in select


class TestMessages:
    """Message persistence."""

    @pytest.fixture
    def author(self, gateway):
        return gateway.insert_account("alice", "good").value

    def test_insert_message_returns_generated_id(self, gateway, author):
        result = gateway.insert_message(author.account_id, "hi", 1000)

        assert result.is_success
        assert result.value == MessageRecord(
            message_id=1, posted_by=author.account_id, message_text="hi", time_posted_epoch=1000
        )

    def test_insert_message_for_unknown_account_is_conflict(self, gateway):
        result = gateway.insert_message(99, "hi", 1000)

        assert result.is_conflict
        assert gateway.get_all_messages().value == []

    def test_get_all_messages(self, gateway, author):
        gateway.insert_message(author.account_id, "one", 1000)
        gateway.insert_message(author.account_id, "two", 1001)

        result = gateway.get_all_messages()

        assert result.is_success
        assert sorted(m.message_text for m in result.value) == ["one", "two"]

    def test_get_message_by_id_not_found(self, gateway):
        assert gateway.get_message_by_id(42).is_not_found

    def test_messages_by_account_without_messages_is_empty_list(self, gateway, author):
        result = gateway.get_messages_by_account_id(author.account_id)

        assert result.is_success
        assert result.value == []

    def test_messages_by_account_filters_on_author(self, gateway, author):
        other = gateway.insert_account("bob", "pass1").value
        gateway.insert_message(author.account_id, "mine", 1000)
        gateway.insert_message(other.account_id, "theirs", 1001)

        result = gateway.get_messages_by_account_id(author.account_id)

        assert [m.message_text for m in result.value] == ["mine"]

    def test_update_message_changes_text_only(self, gateway, author):
        created = gateway.insert_message(author.account_id, "before", 1000).value

        result = gateway.update_message(created.message_id, "after")

        assert result.is_success
        stored = gateway.get_message_by_id(created.message_id).value
        assert stored.message_text == "after"
        assert stored.posted_by == created.posted_by
        assert stored.time_posted_epoch == created.time_posted_epoch

    def test_update_missing_message_is_not_found(self, gateway):
        assert gateway.update_message(42, "after").is_not_found

    def test_delete_returns_prior_content(self, gateway, author):
        created = gateway.insert_message(author.account_id, "bye", 1000).value

        result = gateway.delete_message_by_id(created.message_id)

        assert result.is_success
        assert result.value == created
        assert gateway.get_message_by_id(created.message_id).is_not_found

    def test_delete_missing_message_issues_no_delete(self, gateway, statements):
        result = gateway.delete_message_by_id(42)

        assert result.is_not_found
        assert not any(s.startswith("DELETE") for s in statements)

    def test_delete_existing_message_issues_one_delete(self, gateway, author, statements):
        created = gateway.insert_message(author.account_id, "bye", 1000).value
        statements.clear()

        gateway.delete_message_by_id(created.message_id)

        assert sum(1 for s in statements if s.startswith("DELETE")) == 1

    def test_message_ids_are_not_reused(self, gateway, author):
        first = gateway.insert_message(author.account_id, "one", 1000).value
        gateway.delete_message_by_id(first.message_id)

        second = gateway.insert_message(author.account_id, "two", 1001).value

        assert second.message_id > first.message_id


class TestStoreFailures:
    """Store errors never escape the gateway."""

    def test_out_of_range_integers_are_reported_not_raised(self, gateway):
        too_large = 2 ** 70
        author = gateway.insert_account("alice", "good").value

        assert gateway.get_message_by_id(too_large).is_failure
        assert gateway.account_exists_by_id(too_large).is_failure
        assert gateway.insert_message(author.account_id, "hi", too_large).is_failure
        assert gateway.update_message(too_large, "hi").is_failure
        assert gateway.delete_message_by_id(too_large).is_failure
        assert gateway.get_all_messages().value == []

    def test_failures_are_reported_not_raised(self, broken_gateway):
        assert broken_gateway.insert_account("alice", "good").is_failure
        assert broken_gateway.get_account_by_username("alice").is_failure
        assert broken_gateway.account_exists_by_id(1).is_failure
        assert broken_gateway.get_all_messages().is_failure
        assert broken_gateway.get_message_by_id(1).is_failure
        assert broken_gateway.get_messages_by_account_id(1).is_failure
        assert broken_gateway.insert_message(1, "hi", 1000).is_failure
        assert broken_gateway.update_message(1, "hi").is_failure
        assert broken_gateway.delete_message_by_id(1).is_failure

    def test_failure_is_logged_through_injected_logger(self, caplog):
        engine = create_db_engine("sqlite://", poolclass=StaticPool)
        storage_logger = logging.getLogger("tests.storage_gateway")
        gateway = StorageGateway(sessionmaker(bind=engine), logger=storage_logger)

        with caplog.at_level(logging.ERROR, logger="tests.storage_gateway"):
            result = gateway.get_all_messages()

        assert result.is_failure
        assert result.reason
        assert any(
            r.name == "tests.storage_gateway" and "get_all_messages failed" in r.getMessage()
            for r in caplog.records
        )
        engine.dispose()
