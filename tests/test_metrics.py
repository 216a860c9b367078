from functools import partial

import logging

import pytest

from sakura_exporter.metrics import (
    Collector,
    Desc,
    ErrorCounter,
    Metric,
    ValueType,
    flatten_string_slice,
    format_id,
)


class _Echo(Collector):
    error_label = "echo"

    def __init__(self, values, **kwargs):
        super().__init__(**kwargs)
        self.values = values
        self.desc = Desc("echo_value", "echo", ("index",))

    def describe(self):
        return [self.desc]

    def collect(self):
        return self._gather(
            [partial(self._one, index, value) for index, value in enumerate(self.values)]
        )

    def _one(self, index, value):
        if value is None:
            self._warn(f"missing value: {index}", RuntimeError("boom"))
            return []
        return [Metric(self.desc, value, (str(index),))]


def test_flatten_string_slice_wraps_in_commas():
    assert flatten_string_slice(["tag1", "tag2"]) == ",tag1,tag2,"


def test_flatten_string_slice_empty():
    assert flatten_string_slice([]) == ""


def test_format_id():
    assert format_id(101) == "101"
    assert format_id(0) == ""


def test_metric_labels_round_trip():
    desc = Desc("x", "help", ["id", "name"])
    metric = Metric(desc, 1, ["101", "server"])
    assert metric.labels() == {"id": "101", "name": "server"}
    assert metric.value_type is ValueType.GAUGE
    assert metric.label_values == ("101", "server")


def test_metric_rejects_wrong_label_count():
    desc = Desc("x", "help", ("id", "name"))
    with pytest.raises(ValueError):
        Metric(desc, 1.0, ("101",))


def test_metric_equality_and_hash():
    desc = Desc("x", "help", ("id",))
    assert Metric(desc, 1, ("1",)) == Metric(desc, 1.0, ["1"])
    assert len({Metric(desc, 1, ("1",)), Metric(desc, 1.0, ("1",))}) == 1


def test_error_counter_accumulates():
    counter = ErrorCounter()
    counter.add("server", 0)
    assert counter.value("server") == 0
    counter.add("server")
    counter.add("server", 2)
    assert counter.value("server") == 3
    assert counter.value("nfs") == 0


def test_error_counter_rejects_negative():
    counter = ErrorCounter()
    with pytest.raises(ValueError):
        counter.add("server", -1)


def test_collector_gathers_in_job_order_and_counts_errors(caplog):
    errors = ErrorCounter()
    logger = logging.getLogger("tests.metrics")
    collector = _Echo([1.0, None, 3.0], errors=errors, logger=logger)
    with caplog.at_level(logging.WARNING, logger=logger.name):
        collected = collector.collect()
    assert [m.label_values for m in collected] == [("0",), ("2",)]
    assert [m.value for m in collected] == [1.0, 3.0]
    assert errors.value("echo") == 1
    assert [r.getMessage() for r in caplog.records if r.name == logger.name] == [
        "missing value: 1 err=boom"
    ]


def test_collector_with_no_jobs_returns_nothing():
    errors = ErrorCounter()
    collector = _Echo([], errors=errors)
    assert collector.collect() == []
    assert collector.describe() == [collector.desc]
    assert errors.value("echo") == 0