"""Cloud resources and monitoring values as returned by the API clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class InstanceStatus(Enum):
    """Run state of an instance."""

    UNKNOWN = ""
    UP = "up"
    CLEANING = "cleaning"
    DOWN = "down"

    def is_up(self) -> bool:
        """True when the instance is running."""
        return self is InstanceStatus.UP


class Availability(Enum):
    """Availability of a resource."""

    UNKNOWN = ""
    AVAILABLE = "available"
    UPLOADING = "uploading"
    FAILED = "failed"
    MIGRATING = "migrating"
    TRANSFERRING = "transferring"
    DISCONTINUED = "discontinued"

    def is_available(self) -> bool:
        """True when the resource is available."""
        return self is Availability.AVAILABLE


class UpstreamType(Enum):
    """Kind of network a server's interface is connected to."""

    UNKNOWN = ""
    SHARED = "shared"
    SWITCH = "switch"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


def _from_unix(text: str) -> datetime:
    return datetime.fromtimestamp(int(text), tz=timezone.utc)


@dataclass(kw_only=True)
class FeedItem:
    """A maintenance announcement; dates are Unix seconds as text."""

    str_date: str = ""
    description: str = ""
    str_event_start: str = ""
    str_event_end: str = ""
    title: str = ""
    url: str = ""

    def event_start(self) -> datetime:
        """Start of the maintenance event."""
        return _from_unix(self.str_event_start)

    def event_end(self) -> datetime:
        """End of the maintenance event."""
        return _from_unix(self.str_event_end)


@dataclass(kw_only=True)
class _Sample:
    """A monitoring value taken at one point in time."""

    time: datetime


@dataclass(kw_only=True)
class MonitorInterfaceValue(_Sample):
    receive: float = 0.0
    send: float = 0.0


@dataclass(kw_only=True)
class MonitorFreeDiskSizeValue(_Sample):
    free_disk_size: float = 0.0


@dataclass(kw_only=True)
class MonitorCPUTimeValue(_Sample):
    cpu_time: float = 0.0


@dataclass(kw_only=True)
class MonitorDiskValue(_Sample):
    read: float = 0.0
    write: float = 0.0


@dataclass(kw_only=True)
class MonitorLinkValue(_Sample):
    uplink_bps: float = 0.0
    downlink_bps: float = 0.0


@dataclass(kw_only=True)
class MonitorConnectionValue(_Sample):
    active_connections: float = 0.0
    connections_per_sec: float = 0.0


@dataclass(kw_only=True)
class _Resource:
    """Fields shared by every named cloud resource."""

    id: int
    name: str = ""
    tags: list[str] = field(default_factory=list)
    description: str = ""


@dataclass(kw_only=True)
class _Instance(_Resource):
    """A zoned resource that runs on a host."""

    zone_name: str = ""
    availability: Availability = Availability.UNKNOWN
    instance_status: InstanceStatus = InstanceStatus.UNKNOWN
    instance_host_name: str = ""
    instance_host_info_url: str = ""


@dataclass(kw_only=True)
class MobileGatewayInterface:
    ip_address: str = ""
    subnet_network_mask_len: int = 0


@dataclass(kw_only=True)
class MobileGateway(_Instance):
    internet_connection_enabled: bool = False
    inter_device_communication_enabled: bool = False
    interfaces: list[MobileGatewayInterface] = field(default_factory=list)


@dataclass(kw_only=True)
class TrafficControl:
    traffic_quota_in_mb: int = 0
    band_width_limit_in_kbps: int = 0
    email_notify_enabled: bool = False
    slack_notify_enabled: bool = False
    slack_notify_webhooks_url: str = ""
    auto_traffic_shaping: bool = False


@dataclass(kw_only=True)
class TrafficStatus:
    uplink_bytes: int = 0
    downlink_bytes: int = 0
    traffic_shaping: bool = False


@dataclass(kw_only=True)
class NFSPlan:
    nfs_plan_id: int = 0
    size: int = 0
    disk_plan_id: int = 0


@dataclass(kw_only=True)
class NFS(_Instance):
    ip_addresses: list[str] = field(default_factory=list)
    default_route: str = ""
    network_mask_len: int = 0
    switch_id: int = 0
    switch_name: str = ""
    plan: NFSPlan | None = None
    plan_name: str = ""


@dataclass(kw_only=True)
class Storage:
    id: int = 0
    storage_class: str = ""
    generation: int = 0


@dataclass(kw_only=True)
class ServerDisk:
    id: int
    name: str = ""
    disk_plan_id: int = 0
    connection: str = ""
    size_mb: int = 0
    storage: Storage | None = None


@dataclass(kw_only=True)
class ServerInterface:
    id: int
    switch_id: int = 0
    switch_name: str = ""
    upstream_type: UpstreamType = UpstreamType.UNKNOWN
    bandwidth_mbps: int = 0


@dataclass(kw_only=True)
class Server(_Instance):
    cpu: int = 0
    memory_mb: int = 0
    disks: list[ServerDisk] = field(default_factory=list)
    interfaces: list[ServerInterface] = field(default_factory=list)
    private_host_id: int = 0
    private_host_name: str = ""

    def memory_gb(self) -> int:
        """Memory size in whole GB."""
        return self.memory_mb // 1024


@dataclass(kw_only=True)
class Disk(ServerDisk):
    tags: list[str] = field(default_factory=list)
    description: str = ""

    def size_gb(self) -> int:
        """Disk size in whole GB."""
        return self.size_mb // 1024


@dataclass(kw_only=True)
class SIMInfo:
    imei_lock: bool = False
    registered_date: datetime | None = None
    activated_date: datetime | None = None
    deactivated_date: datetime | None = None
    ip: str = ""
    sim_group_id: str = ""
    session_status: str = ""


@dataclass(kw_only=True)
class SIM(_Resource):
    info: SIMInfo = field(default_factory=SIMInfo)


@dataclass(kw_only=True)
class SIMNetworkOperatorConfig:
    allow: bool = False
    name: str = ""


@dataclass(kw_only=True)
class BindPort:
    proxy_mode: str = ""
    port: int = 0


@dataclass(kw_only=True)
class _Endpoint:
    ip_address: str = ""
    port: int = 0


@dataclass(kw_only=True)
class ProxyLBServer(_Endpoint):
    enabled: bool = False


@dataclass(kw_only=True)
class SorryServer(_Endpoint):
    pass


@dataclass(kw_only=True)
class ProxyLB(_Resource):
    plan: int = 0
    virtual_ip_address: str = ""
    fqdn: str = ""
    proxy_networks: list[str] = field(default_factory=list)
    sorry_server: SorryServer = field(default_factory=SorryServer)
    bind_ports: list[BindPort] = field(default_factory=list)
    servers: list[ProxyLBServer] = field(default_factory=list)
    availability: Availability = Availability.UNKNOWN


@dataclass(kw_only=True)
class Certificate:
    certificate_end_date: datetime
    server_certificate: str = ""
    private_key: str = ""


@dataclass(kw_only=True)
class ProxyLBCertificates:
    primary_cert: Certificate | None = None
    additional_certs: list[Certificate] = field(default_factory=list)