from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from sakura_exporter.metrics import Desc, ErrorCounter, Metric
from sakura_exporter.nfs import NFSCollector
from sakura_exporter.resources import (
    NFS,
    Availability,
    FeedItem,
    InstanceStatus,
    MonitorFreeDiskSizeValue,
    MonitorInterfaceValue,
    NFSPlan,
)

MONITOR_TIME = datetime.fromtimestamp(1, tz=timezone.utc)


@dataclass
class DummyNFSClient:
    found: list | None = None
    find_err: Exception | None = None
    monitor_free: MonitorFreeDiskSizeValue | None = None
    monitor_free_err: Exception | None = None
    monitor_nic_value: MonitorInterfaceValue | None = None
    monitor_nic_err: Exception | None = None
    maintenance: FeedItem | None = None
    maintenance_err: Exception | None = None

    def find(self):
        if self.find_err:
            raise self.find_err
        return self.found or []

    def monitor_free_disk_size(self, zone, resource_id, end):
        if self.monitor_free_err:
            raise self.monitor_free_err
        return self.monitor_free

    def monitor_nic(self, zone, resource_id, end):
        if self.monitor_nic_err:
            raise self.monitor_nic_err
        return self.monitor_nic_value

    def maintenance_info(self, info_url):
        if self.maintenance_err:
            raise self.maintenance_err
        return self.maintenance


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.WARNING)
        self.messages: list[str] = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def _make(client):
    handler = _ListHandler()
    logger = logging.Logger("test-nfs")
    logger.addHandler(handler)
    errors = ErrorCounter()
    return NFSCollector(client, errors=errors, logger=logger), errors, handler


def _metric(desc: Desc, value, labels: dict, timestamp=None) -> Metric:
    assert set(labels) == set(desc.label_names)
    return Metric(desc, value, tuple(labels[n] for n in desc.label_names), timestamp=timestamp)


def _nfs(**overrides) -> NFS:
    fields = dict(
        id=101,
        name="nfs",
        zone_name="is1a",
        tags=["tag1", "tag2"],
        description="desc",
        instance_host_name="sacXXX",
        instance_status=InstanceStatus.UP,
        availability=Availability.AVAILABLE,
        ip_addresses=["192.168.0.11"],
        default_route="192.168.0.1",
        network_mask_len=24,
        switch_id=201,
        switch_name="switch",
        plan=NFSPlan(nfs_plan_id=1001, size=100, disk_plan_id=2),
        plan_name="HDD 100GB",
    )
    fields.update(overrides)
    return NFS(**fields)


BASE = {"id": "101", "name": "nfs", "zone": "is1a"}
INFO = {
    **BASE,
    "plan": "HDD 100GB",
    "size": "100",
    "host": "sacXXX",
    "tags": ",tag1,tag2,",
    "description": "desc",
}
NIC_INFO = {
    **BASE,
    "upstream_id": "201",
    "upstream_name": "switch",
    "ipaddress": "192.168.0.11",
    "nw_mask_len": "24",
    "gateway": "192.168.0.1",
}


def _base_metrics(c: NFSCollector, scheduled: float) -> list[Metric]:
    return [
        _metric(c.up, 1, BASE),
        _metric(c.nfs_info, 1, INFO),
        _metric(c.nic_info, 1, NIC_INFO),
        _metric(c.maintenance_scheduled, scheduled, BASE),
    ]


def test_describe_returns_every_descriptor():
    c, _, _ = _make(DummyNFSClient())
    descs = c.describe()
    assert len(descs) == 10
    assert len({d.name for d in descs}) == 10
    assert descs[0].name == "sakuracloud_nfs_up"


def test_error_counter_starts_at_zero():
    _, errors, _ = _make(DummyNFSClient())
    assert errors.value("nfs") == 0.0


def test_find_error():
    c, errors, handler = _make(DummyNFSClient(find_err=RuntimeError("dummy")))
    assert c.collect() == []
    assert handler.messages == ["can't list nfs err=dummy"]
    assert errors.value("nfs") == 1


def test_empty_result():
    c, errors, handler = _make(DummyNFSClient())
    assert c.collect() == []
    assert handler.messages == []
    assert errors.value("nfs") == 0


def test_nfs_without_activity_monitor():
    c, errors, handler = _make(DummyNFSClient(found=[_nfs()]))
    assert Counter(c.collect()) == Counter(_base_metrics(c, 0))
    assert handler.messages == []
    assert errors.value("nfs") == 0


def test_nfs_with_activity_monitor():
    client = DummyNFSClient(
        found=[_nfs()],
        monitor_free=MonitorFreeDiskSizeValue(time=MONITOR_TIME, free_disk_size=100),
        monitor_nic_value=MonitorInterfaceValue(time=MONITOR_TIME, receive=200, send=300),
    )
    c, errors, handler = _make(client)
    expected = _base_metrics(c, 0) + [
        _metric(c.disk_free, float(100) / 1024 / 1024, BASE, MONITOR_TIME),
        _metric(c.nic_receive, float(200) * 8 / 1000, BASE, MONITOR_TIME),
        _metric(c.nic_send, float(300) * 8 / 1000, BASE, MONITOR_TIME),
    ]
    assert Counter(c.collect()) == Counter(expected)
    assert handler.messages == []
    assert errors.value("nfs") == 0


def test_activity_monitor_apis_return_error():
    client = DummyNFSClient(
        found=[_nfs()],
        monitor_free_err=RuntimeError("dummy1"),
        monitor_nic_err=RuntimeError("dummy2"),
    )
    c, errors, handler = _make(client)
    assert Counter(c.collect()) == Counter(_base_metrics(c, 0))
    assert sorted(handler.messages) == [
        "can't get disk's free size: NFSID=101 err=dummy1",
        "can't get nfs's NIC metrics: NFSID=101 err=dummy2",
    ]
    assert errors.value("nfs") == 2


def test_nfs_with_maintenance_info():
    client = DummyNFSClient(
        found=[_nfs(instance_host_info_url="http://example.com/maintenance-info-dummy-url")],
        maintenance=FeedItem(
            str_date="947430000",
            description="desc",
            str_event_start="946652400",
            str_event_end="949244400",
            title="dummy-title",
            url="http://example.com/maintenance",
        ),
    )
    c, errors, handler = _make(client)
    expected = _base_metrics(c, 1) + [
        _metric(
            c.maintenance_info,
            1,
            {
                **BASE,
                "info_url": "http://example.com/maintenance",
                "info_title": "dummy-title",
                "description": "desc",
                "start_date": "946652400",
                "end_date": "949244400",
            },
        ),
        _metric(c.maintenance_start_time, 946652400, BASE),
        _metric(c.maintenance_end_time, 949244400, BASE),
    ]
    assert Counter(c.collect()) == Counter(expected)
    assert handler.messages == []
    assert errors.value("nfs") == 0


def test_down_nfs_has_no_monitoring_metrics():
    client = DummyNFSClient(
        found=[_nfs(instance_status=InstanceStatus.DOWN, instance_host_name="", plan=None)],
        monitor_free=MonitorFreeDiskSizeValue(time=MONITOR_TIME, free_disk_size=100),
    )
    c, _, _ = _make(client)
    metrics = c.collect()
    by_name = {m.desc.name: m for m in metrics}
    assert set(by_name) == {"sakuracloud_nfs_up", "sakuracloud_nfs_info", "sakuracloud_nfs_nic_info"}
    assert by_name["sakuracloud_nfs_up"].value == 0.0
    info = by_name["sakuracloud_nfs_info"].labels()
    assert (info["host"], info["plan"], info["size"]) == ("-", "", "")


@pytest.mark.parametrize("mask_len, expected", [(0, ""), (16, "16")])
def test_nic_info_mask_len(mask_len, expected):
    c, _, _ = _make(DummyNFSClient(found=[_nfs(network_mask_len=mask_len, ip_addresses=[])]))
    nic = next(m for m in c.collect() if m.desc is c.nic_info)
    assert nic.labels()["nw_mask_len"] == expected
    assert nic.labels()["ipaddress"] == ""