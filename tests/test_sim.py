from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from sakura_exporter.metrics import Desc, ErrorCounter, Metric
from sakura_exporter.resources import SIM, MonitorLinkValue, SIMInfo, SIMNetworkOperatorConfig
from sakura_exporter.sim import SIMCollector

MONITOR_TIME = datetime.fromtimestamp(1, tz=timezone.utc)


@dataclass
class DummySIMClient:
    found: list | None = None
    find_err: Exception | None = None
    nop_config: list | None = None
    nop_config_err: Exception | None = None
    monitor: MonitorLinkValue | None = None
    monitor_err: Exception | None = None

    def find(self):
        if self.find_err:
            raise self.find_err
        return self.found or []

    def get_network_operator_config(self, resource_id):
        if self.nop_config_err:
            raise self.nop_config_err
        return self.nop_config or []

    def monitor_traffic(self, resource_id, end):
        if self.monitor_err:
            raise self.monitor_err
        return self.monitor


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.WARNING)
        self.messages: list[str] = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def _make(client):
    handler = _ListHandler()
    logger = logging.Logger("test-sim")
    logger.addHandler(handler)
    errors = ErrorCounter()
    return SIMCollector(client, errors=errors, logger=logger), errors, handler


def _metric(desc: Desc, value, labels: dict, timestamp=None) -> Metric:
    assert set(labels) == set(desc.label_names)
    return Metric(desc, value, tuple(labels[n] for n in desc.label_names), timestamp=timestamp)


def _sim(session_status="UP") -> SIM:
    return SIM(
        id=101,
        name="sim",
        info=SIMInfo(
            imei_lock=True,
            registered_date=datetime.fromtimestamp(1, tz=timezone.utc),
            activated_date=datetime.fromtimestamp(2, tz=timezone.utc),
            ip="192.0.2.1",
            sim_group_id="201",
            session_status=session_status,
        ),
        tags=["tag1", "tag2"],
        description="desc",
    )


BASE = {"id": "101", "name": "sim"}
INFO = {
    **BASE,
    "imei_lock": "1",
    "registered_date": "1000",
    "activated_date": "2000",
    "deactivated_date": "0",
    "ipaddress": "192.0.2.1",
    "simgroup_id": "201",
    "carriers": ",docomo,kddi,",
    "tags": ",tag1,tag2,",
    "description": "desc",
}
CARRIERS = [
    SIMNetworkOperatorConfig(allow=True, name="docomo"),
    SIMNetworkOperatorConfig(allow=False, name="softbank"),
    SIMNetworkOperatorConfig(allow=True, name="kddi"),
]


def test_describe_returns_every_descriptor():
    c, _, _ = _make(DummySIMClient())
    assert [d.name for d in c.describe()] == [
        "sakuracloud_sim_session_up",
        "sakuracloud_sim_info",
        "sakuracloud_sim_uplink",
        "sakuracloud_sim_downlink",
    ]


def test_find_error():
    c, errors, handler = _make(DummySIMClient(find_err=RuntimeError("dummy")))
    assert c.collect() == []
    assert handler.messages == ["can't list sims err=dummy"]
    assert errors.value("sim") == 1


def test_empty_result():
    c, errors, handler = _make(DummySIMClient())
    assert c.collect() == []
    assert handler.messages == []
    assert errors.value("sim") == 0


def test_sim_with_activity_monitor():
    client = DummySIMClient(
        found=[_sim()],
        nop_config=CARRIERS,
        monitor=MonitorLinkValue(time=MONITOR_TIME, uplink_bps=10 * 1000, downlink_bps=20 * 1000),
    )
    c, errors, handler = _make(client)
    expected = [
        _metric(c.up, 1, BASE),
        _metric(c.sim_info, 1, INFO),
        _metric(c.uplink, 10, BASE, MONITOR_TIME),
        _metric(c.downlink, 20, BASE, MONITOR_TIME),
    ]
    assert Counter(c.collect()) == Counter(expected)
    assert handler.messages == []
    assert errors.value("sim") == 0


def test_apis_return_error():
    client = DummySIMClient(
        found=[_sim()],
        nop_config_err=RuntimeError("dummy1"),
        monitor_err=RuntimeError("dummy2"),
    )
    c, errors, handler = _make(client)
    assert c.collect() == [_metric(c.up, 1, BASE)]
    assert sorted(handler.messages) == [
        "can't get sim's metrics: SIMID=101 err=dummy2",
        "can't get sim's network operator config: SIMID=101 err=dummy1",
    ]
    assert errors.value("sim") == 2


def test_lowercase_session_is_up_but_not_monitored():
    client = DummySIMClient(
        found=[_sim(session_status="up")],
        nop_config=CARRIERS,
        monitor=MonitorLinkValue(time=MONITOR_TIME, uplink_bps=1000),
    )
    c, _, _ = _make(client)
    names = sorted(m.desc.name for m in c.collect())
    assert names == ["sakuracloud_sim_info", "sakuracloud_sim_session_up"]


def test_down_session():
    c, _, _ = _make(DummySIMClient(found=[_sim(session_status="DOWN")]))
    metrics = c.collect()
    up = next(m for m in metrics if m.desc is c.up)
    info = next(m for m in metrics if m.desc is c.sim_info)
    assert up.value == 0.0
    assert info.labels()["carriers"] == ""
    assert len(metrics) == 2