"""OpenTelemetry メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

from ._version import __version__

_meter = metrics.get_meter("featureflow", version=__version__)

event_batches_sent_total = _meter.create_counter(
    name="featureflow_event_batches_sent_total",
    description="Total number of event batches delivered",
    unit="1",
)

event_batches_dropped_total = _meter.create_counter(
    name="featureflow_event_batches_dropped_total",
    description="Total number of event batches discarded after a failed flush",
    unit="1",
)

cache_lookups_total = _meter.create_counter(
    name="featureflow_cache_lookups_total",
    description="Total number of feature cache lookups by result",
    unit="1",
)
