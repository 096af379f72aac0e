from app.core.best_effort import clear_failures, recent_failures, run_best_effort


def test_success_returns_value():
    result = run_best_effort("add", lambda a, b: a + b, 1, b=2)
    assert result.ok
    assert result.value == 3
    assert result.error is None
    assert recent_failures() == []


def test_failure_is_contained_and_recorded():
    def boom():
        raise RuntimeError("push gateway down")

    result = run_best_effort("push:new_like:u1", boom)

    assert not result.ok
    assert result.value is None
    assert result.error == "push gateway down"
    failures = recent_failures()
    assert [f.label for f in failures] == ["push:new_like:u1"]
    assert failures[0].error == "push gateway down"


def test_recent_failures_limit_and_clear():
    for i in range(5):
        run_best_effort(f"step{i}", lambda: 1 / 0)

    assert [f.label for f in recent_failures(limit=2)] == ["step3", "step4"]
    clear_failures()
    assert recent_failures() == []
