import asyncio
from pathlib import Path

import pytest

from pagebuild.tasks import (
    FunctionTask,
    TaskError,
    TransformError,
    parallel,
    series,
)


def recorder(log, name, delay=0.0, fail=False):
    async def run():
        log.append(f"start:{name}")
        await asyncio.sleep(delay)
        if fail:
            raise TaskError(name, "boom")
        log.append(f"end:{name}")

    return FunctionTask(name, run)


def test_series_runs_in_order():
    log = []
    pipeline = series(recorder(log, "a", 0.02), recorder(log, "b"))
    asyncio.run(pipeline())
    assert log == ["start:a", "end:a", "start:b", "end:b"]


def test_series_stops_on_failure():
    log = []
    pipeline = series(recorder(log, "a", fail=True), recorder(log, "b"))
    with pytest.raises(TaskError):
        asyncio.run(pipeline())
    assert log == ["start:a"]


def test_parallel_starts_all_before_any_finishes():
    log = []
    pipeline = parallel(recorder(log, "a", 0.02), recorder(log, "b", 0.02))
    asyncio.run(pipeline())
    assert log[:2] == ["start:a", "start:b"]
    assert sorted(log[2:]) == ["end:a", "end:b"]


def test_parallel_lets_siblings_finish_then_fails():
    log = []
    pipeline = parallel(recorder(log, "bad", fail=True), recorder(log, "slow", 0.02))
    with pytest.raises(TaskError) as excinfo:
        asyncio.run(pipeline())
    assert excinfo.value.task == "bad"
    assert "end:slow" in log


def test_nested_composition_orders_branches():
    log = []
    pipeline = series(
        recorder(log, "clean"),
        parallel(
            series(recorder(log, "compile", 0.02), recorder(log, "useref")),
            recorder(log, "image"),
        ),
    )
    asyncio.run(pipeline())
    assert log[:2] == ["start:clean", "end:clean"]
    assert log.index("end:compile") < log.index("start:useref")
    assert log.index("start:image") < log.index("end:compile")


def test_task_reports_progress(capsys):
    log = []
    asyncio.run(series(recorder(log, "style"), name="build")())
    out = capsys.readouterr().out
    assert "Starting 'build'..." in out
    assert "Starting 'style'..." in out
    assert "Finished 'style' after" in out


def test_unnamed_composites_are_quiet(capsys):
    asyncio.run(parallel(recorder([], "x"))())
    out = capsys.readouterr().out
    assert "parallel" not in out
    assert "Starting 'x'" in out


def test_task_reports_failure(capsys):
    with pytest.raises(TaskError):
        asyncio.run(recorder([], "style", fail=True)())
    err = capsys.readouterr().err
    assert "'style' errored" in err


def test_task_error_message():
    exc = TransformError("style", "bad syntax", Path("src/main.scss"), ValueError("x"))
    assert str(exc) == "[style] src/main.scss: bad syntax"
    assert exc.task == "style"
    assert isinstance(exc.original_error, ValueError)
    assert str(TaskError("clean", "oops")) == "[clean] oops"


def test_composite_names():
    a = FunctionTask("a", lambda: asyncio.sleep(0))
    b = FunctionTask("b", lambda: asyncio.sleep(0))
    assert series(a, b).name == "<series:a,b>"
    assert parallel(a, b, name="compile").name == "compile"
