"""Metrics about NFS appliances."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from .metrics import Desc, ErrorCounter, Job, Metric, flatten_string_slice, format_id
from .mobile_gateway import _LABELS, _kbps, _maintenance_specs, _ZonedCollector
from .resources import NFS, FeedItem, MonitorFreeDiskSizeValue, MonitorInterfaceValue

_INFO_LABELS = _LABELS + ("plan", "size", "host", "tags", "description")
_NIC_INFO_LABELS = _LABELS + (
    "upstream_id",
    "upstream_name",
    "ipaddress",
    "nw_mask_len",
    "gateway",
)


class NFSClient(Protocol):
    """Source of NFS appliance data."""

    def find(self) -> list[NFS]:
        """Return all NFS appliances."""

    def monitor_free_disk_size(
        self, zone: str, resource_id: int, end: datetime
    ) -> MonitorFreeDiskSizeValue | None:
        """Return the latest free disk size of an appliance."""

    def monitor_nic(
        self, zone: str, resource_id: int, end: datetime
    ) -> MonitorInterfaceValue | None:
        """Return the latest traffic values of an appliance's interface."""

    def maintenance_info(self, info_url: str) -> FeedItem:
        """Return the maintenance announcement at ``info_url``."""


_PREFIX = "sakuracloud_nfs"


class NFSCollector(_ZonedCollector):
    """Collects metrics about all NFS appliances."""

    error_label = "nfs"
    _specs = (
        ("up", f"{_PREFIX}_up", "If 1 the nfs is up and running, 0 otherwise", _LABELS),
        (
            "nfs_info",
            f"{_PREFIX}_info",
            "A metric with a constant '1' value labeled by nfs information",
            _INFO_LABELS,
        ),
        ("disk_free", f"{_PREFIX}_free_disk_size", "NFS's Free Disk Size(unit: GB)", _LABELS),
        (
            "nic_info",
            f"{_PREFIX}_nic_info",
            "A metric with a constant '1' value labeled by nic information",
            _NIC_INFO_LABELS,
        ),
        ("nic_receive", f"{_PREFIX}_receive", "NIC's receive bytes(unit: Kbps)", _LABELS),
        ("nic_send", f"{_PREFIX}_send", "NIC's send bytes(unit: Kbps)", _LABELS),
    ) + _maintenance_specs(_PREFIX, "nfs")

    def __init__(
        self,
        client: NFSClient,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(client, errors=errors, logger=logger)

    def describe(self) -> list[Desc]:
        return list(self._descs)

    def collect(self) -> list[Metric]:
        try:
            appliances = self.client.find()
        except Exception as err:
            self._warn("can't list nfs", err)
            return []

        metrics: list[Metric] = []
        jobs: list[Job] = []
        for nfs in appliances:
            labels = self._labels(nfs)
            metrics.append(Metric(self.up, float(nfs.instance_status.is_up()), labels))
            metrics.append(Metric(self.nfs_info, 1.0, self._info_labels(nfs)))
            metrics.append(Metric(self.nic_info, 1.0, self._nic_info_labels(nfs)))

            if not (nfs.availability.is_available() and nfs.instance_status.is_up()):
                continue

            now = datetime.now(timezone.utc)
            jobs.append(partial(self._collect_free_disk_size, nfs, now))
            jobs.append(partial(self._collect_nic_metrics, nfs, now))
            scheduled = bool(nfs.instance_host_info_url)
            if scheduled:
                jobs.append(
                    partial(
                        self._collect_maintenance_info,
                        nfs,
                        f"can't get nfs's maintenance info: ID={nfs.id}",
                    )
                )
            metrics.append(Metric(self.maintenance_scheduled, float(scheduled), labels))

        metrics.extend(self._gather(jobs))
        return metrics

    def _info_labels(self, nfs: NFS) -> tuple[str, ...]:
        plan, size = "", ""
        if nfs.plan is not None:
            plan = nfs.plan_name
            size = str(nfs.plan.size)
        return self._labels(nfs) + (
            plan,
            size,
            nfs.instance_host_name or "-",
            flatten_string_slice(nfs.tags),
            nfs.description,
        )

    def _nic_info_labels(self, nfs: NFS) -> tuple[str, ...]:
        ip = nfs.ip_addresses[0] if nfs.ip_addresses else ""
        mask_len = nfs.network_mask_len
        return self._labels(nfs) + (
            format_id(nfs.switch_id),
            nfs.switch_name,
            ip,
            str(mask_len) if mask_len > 0 else "",
            nfs.default_route,
        )

    def _collect_free_disk_size(self, nfs: NFS, now: datetime) -> list[Metric]:
        try:
            values = self.client.monitor_free_disk_size(nfs.zone_name, nfs.id, now)
        except Exception as err:
            self._warn(f"can't get disk's free size: NFSID={nfs.id}", err)
            return []
        if values is None:
            return []

        free = values.free_disk_size
        if free > 0:
            free = free / 1024 / 1024
        return [Metric(self.disk_free, free, self._labels(nfs), timestamp=values.time)]

    def _collect_nic_metrics(self, nfs: NFS, now: datetime) -> list[Metric]:
        try:
            values = self.client.monitor_nic(nfs.zone_name, nfs.id, now)
        except Exception as err:
            self._warn(f"can't get nfs's NIC metrics: NFSID={nfs.id}", err)
            return []
        if values is None:
            return []

        labels = self._labels(nfs)
        return [
            Metric(self.nic_receive, _kbps(values.receive), labels, timestamp=values.time),
            Metric(self.nic_send, _kbps(values.send), labels, timestamp=values.time),
        ]