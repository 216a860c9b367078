# sakura_exporter

Metric collectors for Sakura Cloud resources. Each collector asks a client
object for the current state of one kind of resource and turns what comes back
into gauge samples named in the `sakuracloud_*` scheme.

## Collectors

| Module                           | Collector                | Client protocol       | Metric prefix                 | Error counter key  |
|----------------------------------|--------------------------|-----------------------|-------------------------------|--------------------|
| `sakura_exporter.server`         | `ServerCollector`        | `ServerClient`        | `sakuracloud_server_`         | `server`           |
| `sakura_exporter.nfs`            | `NFSCollector`           | `NFSClient`           | `sakuracloud_nfs_`            | `nfs`              |
| `sakura_exporter.mobile_gateway` | `MobileGatewayCollector` | `MobileGatewayClient` | `sakuracloud_mobile_gateway_` | `mobile_gateway`   |
| `sakura_exporter.sim`            | `SIMCollector`           | `SIMClient`           | `sakuracloud_sim_`            | `sim`              |
| `sakura_exporter.proxy_lb`       | `ProxyLBCollector`       | `ProxyLBClient`       | `sakuracloud_proxylb_`        | `proxylb`          |

The client protocols are `typing.Protocol` classes: any object with the listed
methods will do. The records the clients return live in
`sakura_exporter.resources`: `Server`, `Disk`, `NFS`, `MobileGateway`, `SIM`,
`ProxyLB`, `ProxyLBCertificates`, the monitor values (`MonitorInterfaceValue`,
`MonitorCPUTimeValue`, `MonitorDiskValue`, `MonitorFreeDiskSizeValue`,
`MonitorLinkValue`, `MonitorConnectionValue`) and `FeedItem` for maintenance
notices, along with the `InstanceStatus`, `Availability` and `UpstreamType`
enums.

## Using a collector

```python
from sakura_exporter.metrics import ErrorCounter
from sakura_exporter.resources import SIM, SIMInfo
from sakura_exporter.sim import SIMCollector


class StaticSIMClient:
    def find(self):
        return [SIM(id=101, name="sim", info=SIMInfo(session_status="DOWN"))]

    def get_network_operator_config(self, resource_id):
        return []

    def monitor_traffic(self, resource_id, end):
        return None


errors = ErrorCounter()
collector = SIMCollector(StaticSIMClient(), errors=errors)

for desc in collector.describe():
    print(desc.name, desc.label_names)

for metric in collector.collect():
    print(metric.desc.name, metric.labels(), metric.value)

print(errors.value("sim"))
```

- `describe()` returns every `Desc` (name, help text, label names) the
  collector can produce.
- `collect()` returns a list of `Metric` samples. Samples built straight from
  the listed resources come first; samples that need further client calls are
  gathered in a thread pool and appended in a fixed order.
- `Metric.labels()` returns the sample's labels as a dict. A `Metric` raises
  `ValueError` when the number of label values does not match its `Desc`.

Every collector takes the keyword arguments `errors` (an `ErrorCounter`; a new
one is made when omitted) and `logger` (a `logging.Logger`).
`ServerCollector` also takes `maintenance_only`; when true, only the
maintenance metrics are produced for each server.

## Errors

When a client call raises, the collector logs a warning of the form
`<message> err=<error>`, adds one to the `ErrorCounter` under its key from the
table above, and goes on. If listing the resources fails, that collection
returns no samples; if a call about a single resource fails, only the samples
that depend on it are left out. Creating a collector registers its key in the
counter with a value of 0. `ErrorCounter.name` is
`sakuracloud_exporter_errors_total`.

## Units

- NIC traffic is reported in Kbps (bytes × 8 / 1000) and SIM traffic in Kbps
  (bits / 1000).
- Server disk read/write is reported in KBps (bytes / 1024).
- NFS free disk size is divided by 1024 × 1024.
- Server CPU time is reported in milliseconds.
- Maintenance start and end are Unix seconds; ProxyLB certificate expiry is
  Unix seconds × 1000.
- Samples taken from monitor values carry the monitor value's time in
  `Metric.timestamp`.

Negative or zero monitor values are passed through unconverted.

## Helpers

`sakura_exporter.metrics` holds the shared pieces: `Desc`, `Metric`,
`ValueType`, `ErrorCounter`, the abstract `Collector` base,
`flatten_string_slice` (renders `["tag1", "tag2"]` as `",tag1,tag2,"` and an
empty list as `""`) and `format_id` (renders an ID as text, zero as `""`).

`sakura_exporter.proxy_lb.certificate_names` returns the subject and issuer
common names of a PEM certificate, or two empty strings when it cannot be
parsed.

## What this package does not do

It contains no API client for Sakura Cloud: you supply objects that satisfy
the client protocols. It has no command, no HTTP server and no text rendering
of metrics for a scrape endpoint; a program serving the samples has to be
built on top of `describe()` and `collect()`.

## Installing

```
pip install .
```

Running the tests:

```
pip install ".[test]"
pytest
```