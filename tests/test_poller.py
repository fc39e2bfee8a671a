import pytest

from flutterdump.core.poller import is_transient_not_ready_error, wait_for_ready
from flutterdump.exceptions import RemoteRpcError, StabilizationTimeout

NOT_READY = "Null check operator used on a null value"


class Probe:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else self.last
        self.last = outcome
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_transient_predicate():
    assert is_transient_not_ready_error(NOT_READY)
    assert is_transient_not_ready_error(f"Unhandled exception:\n{NOT_READY}\n#0 ...")
    assert not is_transient_not_ready_error("Method not found")
    assert not is_transient_not_ready_error("")


def test_returns_first_success_without_sleeping(sleeper):
    probe = Probe([{"result": "tree"}])

    assert wait_for_ready(probe, 3, 0.5, sleep=sleeper) == {"result": "tree"}
    assert probe.calls == 1
    assert sleeper.calls == []


def test_retries_transient_errors_until_ready(sleeper):
    probe = Probe([RemoteRpcError(NOT_READY), RemoteRpcError(NOT_READY), "tree"])

    assert wait_for_ready(probe, 5, 0.5, sleep=sleeper) == "tree"
    assert probe.calls == 3
    assert sleeper.calls == [0.5, 0.5]


def test_exhausted_budget_raises_after_exactly_max_attempts(sleeper):
    probe = Probe([RemoteRpcError(NOT_READY)])

    with pytest.raises(StabilizationTimeout) as exc_info:
        wait_for_ready(probe, 3, 0.1, description="getRootWidgetSummaryTree", sleep=sleeper)

    assert probe.calls == 3
    assert exc_info.value.attempts == 3
    assert "3 attempts" in str(exc_info.value)


def test_other_errors_are_fatal_immediately(sleeper):
    probe = Probe([RemoteRpcError("Method not found"), "tree"])

    with pytest.raises(RemoteRpcError, match="Method not found"):
        wait_for_ready(probe, 5, 0.1, sleep=sleeper)

    assert probe.calls == 1
    assert sleeper.calls == []


def test_non_rpc_errors_propagate(sleeper):
    probe = Probe([ValueError("bug")])

    with pytest.raises(ValueError):
        wait_for_ready(probe, 5, 0.1, sleep=sleeper)
    assert probe.calls == 1
