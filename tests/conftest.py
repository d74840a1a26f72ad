from __future__ import annotations

import pytest

from deploy_connections.observability import bind_trace_id
from tests.support import Harness, make_harness


@pytest.fixture(autouse=True)
def _clear_trace_id():
    """Each test starts without a bound trace identifier."""

    bind_trace_id(None)
    yield
    bind_trace_id(None)


@pytest.fixture()
def harness() -> Harness:
    """Handler over the production/staging connections with recording doubles."""

    return make_harness()
