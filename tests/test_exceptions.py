import pytest

from app.utils.exceptions import (
    ConflictException,
    NotFoundException,
    PermissionDeniedException,
    UpstreamException,
    classify_database_error,
)


class DriverError(Exception):
    pass


class WrappedError(Exception):
    def __init__(self, orig):
        super().__init__("wrapped")
        self.orig = orig


@pytest.mark.parametrize(
    "message, expected, status",
    [
        ("new row violates row-level security policy for table", PermissionDeniedException, 403),
        ("permission denied for relation requisitions", PermissionDeniedException, 403),
        ('duplicate key value violates unique constraint "roles_pkey"', ConflictException, 409),
        ('invalid input syntax for type uuid: "x"', UpstreamException, 400),
        ("connection reset by peer", UpstreamException, 500),
    ],
)
def test_classifies_by_message(message, expected, status):
    error = classify_database_error(WrappedError(DriverError(message)))
    assert isinstance(error, expected)
    assert error.status_code == status


def test_missing_relation_names_the_table():
    error = classify_database_error(
        WrappedError(DriverError('relation "v_inventory_current" does not exist')), table="v_inventory_current"
    )
    assert isinstance(error, UpstreamException)
    assert error.status_code == 500
    assert "v_inventory_current" in error.message
    assert error.details == 'relation "v_inventory_current" does not exist'


def test_app_exceptions_pass_through():
    original = NotFoundException()
    assert classify_database_error(original) is original
