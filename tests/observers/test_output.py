import json

from chefsolo.observers.dispatcher import EventBus
from chefsolo.observers.events import RunSummary, StageStarted, new_ctx
from chefsolo.observers.jsonfile import JsonFileObserver
from chefsolo.observers.output import InstanceLogFile, OutputFanout


def test_instance_log_file_strips_colours_and_carriage_returns(tmp_path):
    sink = InstanceLogFile("toto", tmp_path / "logs")

    sink.output("\x1b[32mRecipe: base::default\x1b[0m")
    sink.output("progress 10%\rprogress 100%")

    assert (tmp_path / "logs" / "toto").read_text() == (
        "Recipe: base::default\nprogress 10%\nprogress 100%\n"
    )


def test_instance_log_file_write_errors_do_not_raise(tmp_path, caplog):
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory")

    InstanceLogFile("toto", blocker).output("line")

    assert "Error writing output to logfile" in caplog.text


def test_fanout_delivers_to_every_sink(capture):
    other = type(capture)()
    OutputFanout([capture, other]).output("hello")

    assert capture.lines == ["hello"]
    assert other.lines == ["hello"]


def test_event_bus_survives_a_failing_observer(capture, caplog):
    class Broken:
        def notify(self, event):
            raise ValueError("boom")

    bus = EventBus(observers=[Broken(), capture])
    event = StageStarted(**new_ctx("toto", "run-1"), stage="Configured")

    bus.emit(event)

    assert capture.events == [event]
    assert "observer" in caplog.text


def test_json_file_observer_appends_one_record_per_event(tmp_path):
    path = tmp_path / "events" / "run.jsonl"
    observer = JsonFileObserver(path)

    observer.notify(StageStarted(**new_ctx("toto", "run-1"), stage="Configured"))
    observer.notify(RunSummary(**new_ctx("toto", "run-1"), status="DONE"))

    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert [r["type"] for r in records] == ["StageStarted", "RunSummary"]
    assert records[0]["instance_id"] == "toto"
    assert records[1]["status"] == "DONE"
    assert records[1]["error"] is None
