"""Metrics about mobile gateways."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, ClassVar, Protocol

from .metrics import Collector, Desc, ErrorCounter, Job, Metric, flatten_string_slice, format_id
from .resources import (
    FeedItem,
    MobileGateway,
    MobileGatewayInterface,
    MonitorInterfaceValue,
    TrafficControl,
    TrafficStatus,
)

_DescSpec = tuple[str, str, str, tuple[str, ...]]

_LABELS = ("id", "name", "zone")
_INFO_LABELS = _LABELS + (
    "internet_connection",
    "inter_device_communication",
    "tags",
    "description",
)
_NIC_LABELS = _LABELS + ("nic_index", "ipaddress", "nw_mask_len")
_TRAFFIC_CONTROL_LABELS = _LABELS + (
    "traffic_quota_in_mb",
    "bandwidth_limit_in_kbps",
    "enable_email",
    "enable_slack",
    "slack_url",
    "auto_traffic_shaping",
)


def _kbps(value: float) -> float:
    """Convert bytes per second to kilobits per second, leaving non-positive values alone."""
    return value * 8 / 1000 if value > 0 else value


def _maintenance_specs(prefix: str, subject: str) -> tuple[_DescSpec, ...]:
    """Descriptors shared by every collector that reports host maintenance."""
    return (
        (
            "maintenance_scheduled",
            f"{prefix}_maintenance_scheduled",
            f"If 1 the {subject} has scheduled maintenance info, 0 otherwise",
            _LABELS,
        ),
        (
            "maintenance_info",
            f"{prefix}_maintenance_info",
            "A metric with a constant '1' value labeled by maintenance information",
            _LABELS + ("info_url", "info_title", "description", "start_date", "end_date"),
        ),
        (
            "maintenance_start_time",
            f"{prefix}_maintenance_start",
            "Scheduled maintenance start time in seconds since epoch (1970)",
            _LABELS,
        ),
        (
            "maintenance_end_time",
            f"{prefix}_maintenance_end",
            "Scheduled maintenance end time in seconds since epoch (1970)",
            _LABELS,
        ),
    )


class _ZonedCollector(Collector):
    """Collector of zoned resources that may announce host maintenance."""

    _specs: ClassVar[tuple[_DescSpec, ...]] = ()

    def __init__(
        self,
        client: Any,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(errors=errors, logger=logger)
        self.client = client
        self._descs: list[Desc] = []
        for attr, name, help_text, labels in self._specs:
            desc = Desc(name, help_text, labels)
            setattr(self, attr, desc)
            self._descs.append(desc)

    @staticmethod
    def _labels(resource: Any) -> tuple[str, ...]:
        return (format_id(resource.id), resource.name, resource.zone_name)

    def _collect_maintenance_info(self, resource: Any, failure: str) -> list[Metric]:
        url = resource.instance_host_info_url
        if not url:
            return []
        try:
            info = self.client.maintenance_info(url)
        except Exception as err:
            self._warn(failure, err)
            return []
        if info is None:
            return []

        start = int(info.event_start().timestamp())
        end = int(info.event_end().timestamp())
        labels = self._labels(resource)
        info_labels = labels + (info.url, info.title, info.description, str(start), str(end))
        return [
            Metric(self.maintenance_info, 1.0, info_labels),
            Metric(self.maintenance_start_time, start, labels),
            Metric(self.maintenance_end_time, end, labels),
        ]


class MobileGatewayClient(Protocol):
    """Source of mobile gateway data."""

    def find(self) -> list[MobileGateway]:
        """Return all mobile gateways."""

    def traffic_status(self, zone: str, resource_id: int) -> TrafficStatus | None:
        """Return the current traffic status of a gateway."""

    def traffic_control(self, zone: str, resource_id: int) -> TrafficControl | None:
        """Return the traffic control settings of a gateway."""

    def monitor_nic(
        self, zone: str, resource_id: int, index: int, end: datetime
    ) -> MonitorInterfaceValue | None:
        """Return the latest traffic values of one interface."""

    def maintenance_info(self, info_url: str) -> FeedItem:
        """Return the maintenance announcement at ``info_url``."""


_PREFIX = "sakuracloud_mobile_gateway"


class MobileGatewayCollector(_ZonedCollector):
    """Collects metrics about all mobile gateways."""

    error_label = "mobile_gateway"
    _specs = (
        ("up", f"{_PREFIX}_up", "If 1 the mobile_gateway is up and running, 0 otherwise", _LABELS),
        (
            "mobile_gateway_info",
            f"{_PREFIX}_info",
            "A metric with a constant '1' value labeled by mobile_gateway information",
            _INFO_LABELS,
        ),
        ("receive", f"{_PREFIX}_nic_receive", "MobileGateway's receive bytes(unit: Kbps)", _NIC_LABELS),
        ("send", f"{_PREFIX}_nic_send", "MobileGateway's send bytes(unit: Kbps)", _NIC_LABELS),
        (
            "traffic_control_info",
            f"{_PREFIX}_traffic_control_info",
            "A metric with a constant '1' value labeled by traffic-control information",
            _TRAFFIC_CONTROL_LABELS,
        ),
        ("traffic_uplink", f"{_PREFIX}_traffic_uplink", "MobileGateway's uplink bytes(unit: KB)", _LABELS),
        (
            "traffic_downlink",
            f"{_PREFIX}_traffic_downlink",
            "MobileGateway's downlink bytes(unit: KB)",
            _LABELS,
        ),
        ("traffic_shaping", f"{_PREFIX}_traffic_shaping", "If 1 the traffic is shaped, 0 otherwise", _LABELS),
    ) + _maintenance_specs(_PREFIX, "mobile gateway")

    def __init__(
        self,
        client: MobileGatewayClient,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(client, errors=errors, logger=logger)

    def describe(self) -> list[Desc]:
        return list(self._descs)

    def collect(self) -> list[Metric]:
        try:
            gateways = self.client.find()
        except Exception as err:
            self._warn("can't list mobile_gateways", err)
            return []

        metrics: list[Metric] = []
        jobs: list[Job] = []
        for gateway in gateways:
            labels = self._labels(gateway)
            metrics.append(Metric(self.up, float(gateway.instance_status.is_up()), labels))
            metrics.append(Metric(self.mobile_gateway_info, 1.0, self._info_labels(gateway)))

            if not (gateway.availability.is_available() and gateway.instance_status.is_up()):
                continue

            jobs.append(partial(self._collect_traffic_control_info, gateway))
            jobs.append(partial(self._collect_traffic_status, gateway))
            now = datetime.now(timezone.utc)
            jobs.extend(
                partial(self._collect_nic_metrics, gateway, index, nic, now)
                for index, nic in enumerate(gateway.interfaces)
            )
            scheduled = bool(gateway.instance_host_info_url)
            if scheduled:
                jobs.append(
                    partial(
                        self._collect_maintenance_info,
                        gateway,
                        f"can't get mobile gateway's maintenance info: ID={gateway.id}",
                    )
                )
            metrics.append(Metric(self.maintenance_scheduled, float(scheduled), labels))

        metrics.extend(self._gather(jobs))
        return metrics

    def _info_labels(self, gateway: MobileGateway) -> tuple[str, ...]:
        return self._labels(gateway) + (
            str(int(gateway.internet_connection_enabled)),
            str(int(gateway.inter_device_communication_enabled)),
            flatten_string_slice(gateway.tags),
            gateway.description,
        )

    def _nic_labels(
        self, gateway: MobileGateway, index: int, nic: MobileGatewayInterface
    ) -> tuple[str, ...]:
        mask_len = nic.subnet_network_mask_len
        return self._labels(gateway) + (
            str(index),
            nic.ip_address,
            str(mask_len) if mask_len > 0 else "",
        )

    def _collect_traffic_control_info(self, gateway: MobileGateway) -> list[Metric]:
        try:
            info = self.client.traffic_control(gateway.zone_name, gateway.id)
        except Exception as err:
            self._warn(
                f"can't get mobile_gateway's traffic control config: ID={gateway.id}", err
            )
            return []
        if info is None:
            return []

        slack_url = info.slack_notify_webhooks_url if info.slack_notify_enabled else ""
        labels = self._labels(gateway) + (
            str(info.traffic_quota_in_mb),
            str(info.band_width_limit_in_kbps),
            str(int(info.email_notify_enabled)),
            str(int(info.slack_notify_enabled)),
            slack_url,
            str(int(info.auto_traffic_shaping)),
        )
        return [Metric(self.traffic_control_info, 1.0, labels)]

    def _collect_traffic_status(self, gateway: MobileGateway) -> list[Metric]:
        try:
            status = self.client.traffic_status(gateway.zone_name, gateway.id)
        except Exception as err:
            self._warn(f"can't get mobile_gateway's traffic status: ID={gateway.id}", err)
            return []
        if status is None:
            return []

        labels = self._labels(gateway)
        return [
            Metric(self.traffic_uplink, status.uplink_bytes, labels),
            Metric(self.traffic_downlink, status.downlink_bytes, labels),
            Metric(self.traffic_shaping, float(status.traffic_shaping), labels),
        ]

    def _collect_nic_metrics(
        self,
        gateway: MobileGateway,
        index: int,
        nic: MobileGatewayInterface,
        now: datetime,
    ) -> list[Metric]:
        try:
            values = self.client.monitor_nic(gateway.zone_name, gateway.id, index, now)
        except Exception as err:
            self._warn(
                f"can't get mobile_gateway's receive bytes: ID={gateway.id}, NICIndex={index}",
                err,
            )
            return []
        if values is None:
            return []

        labels = self._nic_labels(gateway, index, nic)
        return [
            Metric(self.receive, _kbps(values.receive), labels, timestamp=values.time),
            Metric(self.send, _kbps(values.send), labels, timestamp=values.time),
        ]