"""Metrics about servers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from .metrics import Collector, Desc, ErrorCounter, Job, Metric, flatten_string_slice, format_id
from .resources import (
    Disk,
    FeedItem,
    MonitorCPUTimeValue,
    MonitorDiskValue,
    MonitorInterfaceValue,
    Server,
    ServerDisk,
    ServerInterface,
)

_LABELS = ("id", "name", "zone")
_INFO_LABELS = _LABELS + (
    "cpus",
    "disks",
    "nics",
    "memories",
    "host",
    "tags",
    "description",
    "private_host_id",
)
_DISK_LABELS = _LABELS + ("disk_id", "disk_name", "index")
_DISK_INFO_LABELS = _DISK_LABELS + (
    "plan",
    "interface",
    "size",
    "tags",
    "description",
    "storage_id",
    "storage_generation",
    "storage_class",
)
_NIC_LABELS = _LABELS + ("interface_id", "index")
_NIC_INFO_LABELS = _NIC_LABELS + ("upstream_type", "upstream_id", "upstream_name")
_MAINTENANCE_LABELS = _LABELS + ("info_url", "info_title", "description", "start_date", "end_date")

_DISK_PLAN_HDD = 2
_DISK_PLAN_SSD = 4
_DISK_PLAN_LABELS = {_DISK_PLAN_HDD: "hdd", _DISK_PLAN_SSD: "ssd"}


class ServerClient(Protocol):
    """Source of server data."""

    def find(self) -> list[Server]:
        """Return all servers."""

    def read_disk(self, zone: str, disk_id: int) -> Disk | None:
        """Return the details of a disk."""

    def monitor_cpu(
        self, zone: str, resource_id: int, end: datetime
    ) -> MonitorCPUTimeValue | None:
        """Return the latest CPU time of a server."""

    def monitor_disk(self, zone: str, disk_id: int, end: datetime) -> MonitorDiskValue | None:
        """Return the latest read/write values of a disk."""

    def monitor_nic(self, zone: str, nic_id: int, end: datetime) -> MonitorInterfaceValue | None:
        """Return the latest traffic values of an interface."""

    def maintenance_info(self, info_url: str) -> FeedItem:
        """Return the maintenance announcement at ``info_url``."""


def _kbps(value: float) -> float:
    return value * 8 / 1000 if value > 0 else value


def _kbytes(value: float) -> float:
    return value / 1024 if value > 0 else value


class ServerCollector(Collector):
    """Collects metrics about all servers."""

    error_label = "server"

    def __init__(
        self,
        client: ServerClient,
        *,
        maintenance_only: bool = False,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(errors=errors, logger=logger)
        self.client = client
        self.maintenance_only = maintenance_only
        self.up = Desc(
            "sakuracloud_server_up",
            "If 1 the server is up and running, 0 otherwise",
            _LABELS,
        )
        self.server_info = Desc(
            "sakuracloud_server_info",
            "A metric with a constant '1' value labeled by server information",
            _INFO_LABELS,
        )
        self.cpus = Desc(
            "sakuracloud_server_cpus",
            "Number of server's vCPU cores",
            _LABELS,
        )
        self.cpu_time = Desc(
            "sakuracloud_server_cpu_time",
            "Server's CPU time(unit: ms)",
            _LABELS,
        )
        self.memories = Desc(
            "sakuracloud_server_memories",
            "Size of server's memories(unit: GB)",
            _LABELS,
        )
        self.disk_info = Desc(
            "sakuracloud_server_disk_info",
            "A metric with a constant '1' value labeled by disk information",
            _DISK_INFO_LABELS,
        )
        self.disk_read = Desc(
            "sakuracloud_server_disk_read",
            "Disk's read bytes(unit: KBps)",
            _DISK_LABELS,
        )
        self.disk_write = Desc(
            "sakuracloud_server_disk_write",
            "Disk's write bytes(unit: KBps)",
            _DISK_LABELS,
        )
        self.nic_info = Desc(
            "sakuracloud_server_nic_info",
            "A metric with a constant '1' value labeled by nic information",
            _NIC_INFO_LABELS,
        )
        self.nic_bandwidth = Desc(
            "sakuracloud_server_nic_bandwidth",
            "NIC's Bandwidth(unit: Mbps)",
            _NIC_LABELS,
        )
        self.nic_receive = Desc(
            "sakuracloud_server_nic_receive",
            "NIC's receive bytes(unit: Kbps)",
            _NIC_LABELS,
        )
        self.nic_send = Desc(
            "sakuracloud_server_nic_send",
            "NIC's send bytes(unit: Kbps)",
            _NIC_LABELS,
        )
        self.maintenance_scheduled = Desc(
            "sakuracloud_server_maintenance_scheduled",
            "If 1 the server has scheduled maintenance info, 0 otherwise",
            _LABELS,
        )
        self.maintenance_info = Desc(
            "sakuracloud_server_maintenance_info",
            "A metric with a constant '1' value labeled by maintenance information",
            _MAINTENANCE_LABELS,
        )
        self.maintenance_start_time = Desc(
            "sakuracloud_server_maintenance_start",
            "Scheduled maintenance start time in seconds since epoch (1970)",
            _LABELS,
        )
        self.maintenance_end_time = Desc(
            "sakuracloud_server_maintenance_end",
            "Scheduled maintenance end time in seconds since epoch (1970)",
            _LABELS,
        )

    def describe(self) -> list[Desc]:
        return [
            self.up,
            self.server_info,
            self.cpus,
            self.cpu_time,
            self.memories,
            self.disk_info,
            self.disk_read,
            self.disk_write,
            self.nic_info,
            self.nic_bandwidth,
            self.nic_receive,
            self.nic_send,
            self.maintenance_scheduled,
            self.maintenance_info,
            self.maintenance_start_time,
            self.maintenance_end_time,
        ]

    def collect(self) -> list[Metric]:
        try:
            servers = self.client.find()
        except Exception as err:
            self._warn("can't list servers", err)
            return []

        metrics: list[Metric] = []
        jobs: list[Job] = []
        for server in servers:
            labels = self._labels(server)

            if not self.maintenance_only:
                metrics.append(Metric(self.up, float(server.instance_status.is_up()), labels))
                metrics.append(Metric(self.server_info, 1.0, self._info_labels(server)))
                metrics.append(Metric(self.cpus, server.cpu, labels))
                metrics.append(Metric(self.memories, server.memory_gb(), labels))

                jobs.extend(
                    partial(self._collect_disk_info, server, index, disk)
                    for index, disk in enumerate(server.disks)
                )

                for index, nic in enumerate(server.interfaces):
                    metrics.append(
                        Metric(self.nic_info, 1.0, self._nic_info_labels(server, index, nic))
                    )
                    metrics.append(
                        Metric(
                            self.nic_bandwidth,
                            nic.bandwidth_mbps,
                            self._nic_labels(server, index, nic),
                        )
                    )

                if server.availability.is_available() and server.instance_status.is_up():
                    now = datetime.now(timezone.utc)
                    jobs.append(partial(self._collect_cpu_time, server, now))
                    jobs.extend(
                        partial(self._collect_disk_metrics, server, index, disk, now)
                        for index, disk in enumerate(server.disks)
                    )
                    jobs.extend(
                        partial(self._collect_nic_metrics, server, index, nic, now)
                        for index, nic in enumerate(server.interfaces)
                    )

            scheduled = bool(server.instance_host_info_url)
            if scheduled:
                jobs.append(partial(self._collect_maintenance_info, server))
            metrics.append(Metric(self.maintenance_scheduled, float(scheduled), labels))

        metrics.extend(self._gather(jobs))
        return metrics

    @staticmethod
    def _labels(server: Server) -> tuple[str, ...]:
        return (format_id(server.id), server.name, server.zone_name)

    def _info_labels(self, server: Server) -> tuple[str, ...]:
        return self._labels(server) + (
            str(server.cpu),
            str(len(server.disks)),
            str(len(server.interfaces)),
            str(server.memory_gb()),
            server.instance_host_name or "-",
            flatten_string_slice(server.tags),
            server.description,
            format_id(server.private_host_id),
        )

    def _disk_labels(self, server: Server, index: int, disk: ServerDisk) -> tuple[str, ...]:
        return self._labels(server) + (format_id(disk.id), disk.name, str(index))

    def _nic_labels(
        self, server: Server, index: int, nic: ServerInterface
    ) -> tuple[str, ...]:
        return self._labels(server) + (format_id(nic.id), str(index))

    def _nic_info_labels(
        self, server: Server, index: int, nic: ServerInterface
    ) -> tuple[str, ...]:
        upstream_id = "" if nic.switch_id == -1 else str(nic.switch_id)
        return self._nic_labels(server, index, nic) + (
            str(nic.upstream_type),
            upstream_id,
            nic.switch_name,
        )

    def _collect_disk_info(self, server: Server, index: int, connected: ServerDisk) -> list[Metric]:
        try:
            disk = self.client.read_disk(server.zone_name, connected.id)
        except Exception as err:
            self._warn(
                f"can't get server connected disk info: ID={server.id}, DiskID={connected.id}",
                err,
            )
            return []
        if disk is None:
            return []

        storage_id = storage_generation = storage_class = ""
        if disk.storage is not None:
            storage_id = format_id(disk.storage.id)
            storage_generation = str(disk.storage.generation)
            storage_class = disk.storage.storage_class

        labels = self._disk_labels(server, index, connected) + (
            _DISK_PLAN_LABELS.get(disk.disk_plan_id, ""),
            disk.connection,
            str(disk.size_gb()),
            flatten_string_slice(disk.tags),
            disk.description,
            storage_id,
            storage_generation,
            storage_class,
        )
        return [Metric(self.disk_info, 1.0, labels)]

    def _collect_cpu_time(self, server: Server, now: datetime) -> list[Metric]:
        try:
            values = self.client.monitor_cpu(server.zone_name, server.id, now)
        except Exception as err:
            self._warn(f"can't get server's CPU-TIME: ID={server.id}", err)
            return []
        if values is None:
            return []
        return [
            Metric(
                self.cpu_time,
                values.cpu_time * 1000,
                self._labels(server),
                timestamp=values.time,
            )
        ]

    def _collect_disk_metrics(
        self, server: Server, index: int, disk: ServerDisk, now: datetime
    ) -> list[Metric]:
        try:
            values = self.client.monitor_disk(server.zone_name, disk.id, now)
        except Exception as err:
            self._warn(
                f"can't get disk's metrics: ServerID={server.id}, DiskID={disk.id}", err
            )
            return []
        if values is None:
            return []

        labels = self._disk_labels(server, index, disk)
        return [
            Metric(self.disk_read, _kbytes(values.read), labels, timestamp=values.time),
            Metric(self.disk_write, _kbytes(values.write), labels, timestamp=values.time),
        ]

    def _collect_nic_metrics(
        self, server: Server, index: int, nic: ServerInterface, now: datetime
    ) -> list[Metric]:
        try:
            values = self.client.monitor_nic(server.zone_name, nic.id, now)
        except Exception as err:
            self._warn(f"can't get nic's metrics: ServerID={server.id},NICID={nic.id}", err)
            return []
        if values is None:
            return []

        labels = self._nic_labels(server, index, nic)
        return [
            Metric(self.nic_receive, _kbps(values.receive), labels, timestamp=values.time),
            Metric(self.nic_send, _kbps(values.send), labels, timestamp=values.time),
        ]

    def _collect_maintenance_info(self, server: Server) -> list[Metric]:
        if not server.instance_host_info_url:
            return []
        try:
            info = self.client.maintenance_info(server.instance_host_info_url)
        except Exception as err:
            self._warn(f"can't get server's maintenance info: ServerID={server.id}", err)
            return []
        if info is None:
            return []

        start = int(info.event_start().timestamp())
        end = int(info.event_end().timestamp())
        labels = self._labels(server)
        info_labels = labels + (info.url, info.title, info.description, str(start), str(end))
        return [
            Metric(self.maintenance_info, 1.0, info_labels),
            Metric(self.maintenance_start_time, start, labels),
            Metric(self.maintenance_end_time, end, labels),
        ]