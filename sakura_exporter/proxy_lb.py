"""Metrics about enhanced load balancers (ProxyLB)."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from cryptography import x509
from cryptography.x509.oid import NameOID

from .metrics import Collector, Desc, ErrorCounter, Job, Metric, flatten_string_slice, format_id
from .resources import (
    Certificate,
    MonitorConnectionValue,
    ProxyLB,
    ProxyLBCertificates,
)

_LABELS = ("id", "name")
_INFO_LABELS = _LABELS + (
    "plan",
    "vip",
    "fqdn",
    "proxy_networks",
    "sorry_server_ipaddress",
    "sorry_server_port",
    "tags",
    "description",
)
_BIND_PORT_LABELS = _LABELS + ("bind_port_index", "proxy_mode", "port")
_SERVER_LABELS = _LABELS + ("server_index", "ipaddress", "port", "enabled")
_CERT_LABELS = _LABELS + ("cert_index",)
_CERT_INFO_LABELS = _CERT_LABELS + ("common_name", "issuer_name")


class ProxyLBClient(Protocol):
    """Source of ProxyLB data."""

    def find(self) -> list[ProxyLB]:
        """Return all ProxyLBs."""

    def get_certificate(self, resource_id: int) -> ProxyLBCertificates | None:
        """Return the certificates registered to a ProxyLB."""

    def monitor(self, resource_id: int, end: datetime) -> MonitorConnectionValue | None:
        """Return the latest connection values of a ProxyLB."""


def _common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return ""
    value = attributes[-1].value
    return value.decode() if isinstance(value, bytes) else str(value)


def certificate_names(pem_text: str) -> tuple[str, str]:
    """Return the subject and issuer common names of a PEM certificate.

    Text that holds no parsable certificate gives two empty strings.
    """
    try:
        cert = x509.load_pem_x509_certificate(pem_text.encode())
    except ValueError:
        return "", ""
    return _common_name(cert.subject), _common_name(cert.issuer)


def _expire_millis(date: datetime) -> float:
    return float(math.floor(date.timestamp())) * 1000


class ProxyLBCollector(Collector):
    """Collects metrics about all ProxyLBs."""

    error_label = "proxylb"

    def __init__(
        self,
        client: ProxyLBClient,
        *,
        errors: ErrorCounter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(errors=errors, logger=logger)
        self.client = client
        self.up = Desc(
            "sakuracloud_proxylb_up",
            "If 1 the ProxyLB is available, 0 otherwise",
            _LABELS,
        )
        self.proxy_lb_info = Desc(
            "sakuracloud_proxylb_info",
            "A metric with a constant '1' value labeled by proxyLB information",
            _INFO_LABELS,
        )
        self.bind_port_info = Desc(
            "sakuracloud_proxylb_bind_port_info",
            "A metric with a constant '1' value labeled by BindPort information",
            _BIND_PORT_LABELS,
        )
        self.server_info = Desc(
            "sakuracloud_proxylb_server_info",
            "A metric with a constant '1' value labeled by real-server information",
            _SERVER_LABELS,
        )
        self.certificate_info = Desc(
            "sakuracloud_proxylb_cert_info",
            "A metric with a constant '1' value labeled by certificate information",
            _CERT_INFO_LABELS,
        )
        self.certificate_expire_date = Desc(
            "sakuracloud_proxylb_cert_expire",
            "Certificate expiration date in seconds since epoch (1970)",
            _CERT_LABELS,
        )
        self.active_connections = Desc(
            "sakuracloud_proxylb_active_connections",
            "Active connection count",
            _LABELS,
        )
        self.connection_per_sec = Desc(
            "sakuracloud_proxylb_connection_per_sec",
            "Connection count per second",
            _LABELS,
        )

    def describe(self) -> list[Desc]:
        return [
            self.up,
            self.proxy_lb_info,
            self.bind_port_info,
            self.server_info,
            self.certificate_info,
            self.certificate_expire_date,
            self.active_connections,
            self.connection_per_sec,
        ]

    def collect(self) -> list[Metric]:
        try:
            proxy_lbs = self.client.find()
        except Exception as err:
            self._warn("can't list proxyLBs", err)
            return []

        metrics: list[Metric] = []
        jobs: list[Job] = []
        for proxy_lb in proxy_lbs:
            available = proxy_lb.availability.is_available()
            metrics.append(Metric(self.up, float(available), self._labels(proxy_lb)))
            metrics.extend(self._bind_port_info(proxy_lb))
            metrics.extend(self._server_info(proxy_lb))
            metrics.append(self._info(proxy_lb))
            jobs.append(partial(self._collect_cert_info, proxy_lb))
            if available:
                jobs.append(
                    partial(self._collect_metrics, proxy_lb, datetime.now(timezone.utc))
                )

        metrics.extend(self._gather(jobs))
        return metrics

    @staticmethod
    def _labels(proxy_lb: ProxyLB) -> tuple[str, ...]:
        return (format_id(proxy_lb.id), proxy_lb.name)

    def _info(self, proxy_lb: ProxyLB) -> Metric:
        sorry = proxy_lb.sorry_server
        labels = self._labels(proxy_lb) + (
            str(int(proxy_lb.plan)),
            proxy_lb.virtual_ip_address,
            proxy_lb.fqdn,
            flatten_string_slice(proxy_lb.proxy_networks),
            sorry.ip_address,
            str(sorry.port) if sorry.port > 0 else "",
            flatten_string_slice(proxy_lb.tags),
            proxy_lb.description,
        )
        return Metric(self.proxy_lb_info, 1.0, labels)

    def _bind_port_info(self, proxy_lb: ProxyLB) -> list[Metric]:
        labels = self._labels(proxy_lb)
        return [
            Metric(
                self.bind_port_info,
                1.0,
                labels + (str(index), str(port.proxy_mode), str(port.port)),
            )
            for index, port in enumerate(proxy_lb.bind_ports)
        ]

    def _server_info(self, proxy_lb: ProxyLB) -> list[Metric]:
        labels = self._labels(proxy_lb)
        return [
            Metric(
                self.server_info,
                1.0,
                labels
                + (
                    str(index),
                    server.ip_address,
                    str(server.port),
                    "1" if server.enabled else "0",
                ),
            )
            for index, server in enumerate(proxy_lb.servers)
        ]

    def _cert_metrics(self, proxy_lb: ProxyLB, index: int, cert: Certificate) -> list[Metric]:
        common_name, issuer_name = certificate_names(cert.server_certificate)
        cert_labels = self._labels(proxy_lb) + (str(index),)
        return [
            Metric(self.certificate_info, 1.0, cert_labels + (common_name, issuer_name)),
            Metric(
                self.certificate_expire_date,
                _expire_millis(cert.certificate_end_date),
                cert_labels,
            ),
        ]

    def _collect_cert_info(self, proxy_lb: ProxyLB) -> list[Metric]:
        try:
            certs = self.client.get_certificate(proxy_lb.id)
        except Exception as err:
            self._warn(f"can't get certificate: proxyLB={proxy_lb.id}", err)
            return []
        if certs is None:
            return []
        primary = certs.primary_cert
        if primary is None or not primary.private_key or not primary.server_certificate:
            return []

        metrics = self._cert_metrics(proxy_lb, 0, primary)
        for index, cert in enumerate(certs.additional_certs, start=1):
            metrics.extend(self._cert_metrics(proxy_lb, index, cert))
        return metrics

    def _collect_metrics(self, proxy_lb: ProxyLB, now: datetime) -> list[Metric]:
        try:
            values = self.client.monitor(proxy_lb.id, now)
        except Exception as err:
            self._warn(f"can't get proxyLB's metrics: ProxyLBID={proxy_lb.id}", err)
            return []
        if values is None:
            return []

        labels = self._labels(proxy_lb)
        return [
            Metric(
                self.active_connections,
                values.active_connections,
                labels,
                timestamp=values.time,
            ),
            Metric(
                self.connection_per_sec,
                values.connections_per_sec,
                labels,
                timestamp=values.time,
            ),
        ]