"""Unit tests for userstamp errors and the diagnostic handler."""

from userstamp.core.exceptions import (
    MissingStampAttributeError,
    StampRelationshipConflictError,
    StamperClassNotFoundError,
    UserstampError,
    get_diagnostic_handler,
    report,
    set_diagnostic_handler,
)


def test_error_messages():
    not_found = StamperClassNotFoundError("Post", "person")
    missing = MissingStampAttributeError("Post", "deleter_id")

    assert isinstance(not_found, UserstampError)
    assert isinstance(missing, UserstampError)
    assert str(not_found) == "Post: stamper class 'person' could not be resolved"
    assert str(missing) == "Post has no attribute 'deleter_id'"


def test_report_without_handler_does_not_raise():
    assert get_diagnostic_handler() is None
    report(MissingStampAttributeError("Post", "deleter_id"))


def test_report_calls_handler():
    received = []
    set_diagnostic_handler(received.append)
    error = StamperClassNotFoundError("Post", "person")

    report(error)

    assert received == [error]


def test_handler_can_be_removed():
    received = []
    set_diagnostic_handler(received.append)
    set_diagnostic_handler(None)

    report(StamperClassNotFoundError("Post", "person"))

    assert received == []
    assert get_diagnostic_handler() is None


def test_relationship_conflict_message():
    conflict = StampRelationshipConflictError("Post", "deleter", "no longer configured")

    assert isinstance(conflict, UserstampError)
    assert conflict.relationship == "deleter"
    assert str(conflict) == "Post.deleter: no longer configured"
