"""Rate limiting decorator tests"""
import uuid

import pytest
from fastapi import HTTPException

from app.core.rate_limit import rate_limit, reset_rate_limits


class _Caller:
    def __init__(self):
        self.id = uuid.uuid4()
        self.is_admin = False


@pytest.fixture(autouse=True)
def clean_store():
    reset_rate_limits()
    yield
    reset_rate_limits()


def test_requests_over_limit_are_rejected():
    @rate_limit(max_requests=2, window_seconds=60)
    def endpoint(current_user=None):
        return "ok"

    caller = _Caller()
    assert endpoint(current_user=caller) == "ok"
    assert endpoint(current_user=caller) == "ok"
    with pytest.raises(HTTPException) as exc_info:
        endpoint(current_user=caller)
    assert exc_info.value.status_code == 429


def test_limits_are_per_user():
    @rate_limit(max_requests=1, window_seconds=60)
    def endpoint(current_user=None):
        return "ok"

    assert endpoint(current_user=_Caller()) == "ok"
    assert endpoint(current_user=_Caller()) == "ok"
