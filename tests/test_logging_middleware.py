"""
Tests for the request logging middleware helpers.
"""

import pytest

from crowdchain.middleware.logging_middleware import actor_from_header, log_level_for, new_request_id


@pytest.mark.parametrize("path,status,level", [
    ("/campaigns", 200, "info"),
    ("/healthz", 200, "debug"),
    ("/healthz", 503, "error"),
    ("/campaigns/missing", 404, "warning"),
    ("/campaigns", 500, "error"),
])
def test_log_level_for(path, status, level):
    assert log_level_for(path, status) == level


def test_actor_from_header():
    assert actor_from_header("0x" + "AB" * 20) == "0x" + "ab" * 20
    assert actor_from_header("not-an-address") is None
    assert actor_from_header(None) is None
    assert actor_from_header("") is None


def test_request_ids_are_unique():
    first, second = new_request_id(), new_request_id()

    assert len(first) == 12
    assert first != second
