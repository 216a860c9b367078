"""Metrics about SIMs."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from .metrics import Collector, Desc, ErrorCounter, Job, Metric, flatten_string_slice, format_id
from .resources import SIM, MonitorLinkValue, SIMNetworkOperatorConfig

_LABELS = ("id", "name")
_INFO_LABELS = _LABELS + (
    "imei_lock",
    "registered_date",
    "activated_date",
    "deactivated_date",
    "ipaddress",
    "simgroup_id",
    "carriers",
    "tags",
    "description",
)


class SIMClient(Protocol):
    """Source of SIM data."""

    def find(self) -> list[SIM]:
        """Return all SIMs."""

    def get_network_operator_config(self, resource_id: int) -> list[SIMNetworkOperatorConfig]:
        """Return the carrier settings of a SIM."""

    def monitor_traffic(self, resource_id: int, end: datetime) -> MonitorLinkValue | None:
        """Return the latest traffic values of a SIM."""


def _millis(date: datetime | None) -> int:
    if date is None:
        return 0
    return math.floor(date.timestamp()) * 1000


class SIMCollector(Collector):
    """Collects metrics about all SIMs."""

    error_label = "sim"

    def __init__(
        self,
        client: SIMClient,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(errors=errors, logger=logger)
        self.client = client
        self.up = Desc(
            "sakuracloud_sim_session_up",
            "If 1 the session is up and running, 0 otherwise",
            _LABELS,
        )
        self.sim_info = Desc(
            "sakuracloud_sim_info",
            "A metric with a constant '1' value labeled by sim information",
            _INFO_LABELS,
        )
        self.uplink = Desc(
            "sakuracloud_sim_uplink",
            "Uplink traffic (unit: Kbps)",
            _LABELS,
        )
        self.downlink = Desc(
            "sakuracloud_sim_downlink",
            "Downlink traffic (unit: Kbps)",
            _LABELS,
        )

    def describe(self) -> list[Desc]:
        return [self.up, self.sim_info, self.uplink, self.downlink]

    def collect(self) -> list[Metric]:
        try:
            sims = self.client.find()
        except Exception as err:
            self._warn("can't list sims", err)
            return []

        metrics: list[Metric] = []
        jobs: list[Job] = []
        for sim in sims:
            status = sim.info.session_status
            metrics.append(Metric(self.up, float(status.lower() == "up"), self._labels(sim)))
            jobs.append(partial(self._collect_sim_info, sim))
            if status == "UP":
                jobs.append(partial(self._collect_sim_metrics, sim, datetime.now(timezone.utc)))

        metrics.extend(self._gather(jobs))
        return metrics

    @staticmethod
    def _labels(sim: SIM) -> tuple[str, ...]:
        return (format_id(sim.id), sim.name)

    def _collect_sim_info(self, sim: SIM) -> list[Metric]:
        try:
            configs = self.client.get_network_operator_config(sim.id)
        except Exception as err:
            self._warn(f"can't get sim's network operator config: SIMID={sim.id}", err)
            return []
        carriers = [config.name for config in configs or () if config.allow]

        info = sim.info
        labels = self._labels(sim) + (
            "1" if info.imei_lock else "0",
            str(_millis(info.registered_date)),
            str(_millis(info.activated_date)),
            str(_millis(info.deactivated_date)),
            info.ip,
            info.sim_group_id,
            flatten_string_slice(carriers),
            flatten_string_slice(sim.tags),
            sim.description,
        )
        return [Metric(self.sim_info, 1.0, labels)]

    def _collect_sim_metrics(self, sim: SIM, now: datetime) -> list[Metric]:
        try:
            values = self.client.monitor_traffic(sim.id, now)
        except Exception as err:
            self._warn(f"can't get sim's metrics: SIMID={sim.id}", err)
            return []
        if values is None:
            return []

        uplink = values.uplink_bps
        if uplink > 0:
            uplink /= 1000
        downlink = values.downlink_bps
        if downlink > 0:
            downlink /= 1000
        labels = self._labels(sim)
        return [
            Metric(self.uplink, uplink, labels, timestamp=values.time),
            Metric(self.downlink, downlink, labels, timestamp=values.time),
        ]