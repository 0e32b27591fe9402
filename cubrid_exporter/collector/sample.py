"""
Metric samples and descriptors.

A ``MetricDesc`` plays the role of a Prometheus descriptor: it fixes the
fully-qualified name, help text and label names of a metric, and builds
immutable ``Sample`` values for it. Samples travel from scrapers through the
``SampleSink`` and are grouped into ``prometheus_client`` metric families at
encode time.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from prometheus_client.core import Metric

NAMESPACE = "cubrid"


class ValueKind(Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class Sample:
    """One metric observation."""
    name: str
    documentation: str
    labels: Tuple[Tuple[str, str], ...]
    value: float
    kind: ValueKind = ValueKind.GAUGE

    @property
    def label_dict(self) -> Dict[str, str]:
        return dict(self.labels)


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


class MetricDesc:
    """Name, help and label schema shared by every sample of one metric."""

    def __init__(self, fq_name: str, documentation: str, label_names: Iterable[str] = ()):
        self.fq_name = fq_name
        self.documentation = documentation
        self.label_names = tuple(label_names)

    def __repr__(self) -> str:
        return f"MetricDesc({self.fq_name!r}, labels={list(self.label_names)})"

    def _sample(self, kind: ValueKind, value: float, label_values) -> Sample:
        if len(label_values) != len(self.label_names):
            raise ValueError(
                f"{self.fq_name}: expected {len(self.label_names)} label values, "
                f"got {len(label_values)}"
            )
        return Sample(
            name=self.fq_name,
            documentation=self.documentation,
            labels=tuple(zip(self.label_names, (str(v) for v in label_values))),
            value=float(value),
            kind=kind,
        )

    def gauge(self, value: float, *label_values) -> Sample:
        return self._sample(ValueKind.GAUGE, value, label_values)

    def counter(self, value: float, *label_values) -> Sample:
        return self._sample(ValueKind.COUNTER, value, label_values)


def families_from_samples(samples: Iterable[Sample]) -> List[Metric]:
    """
    Group samples into metric families, preserving first-seen order.

    Samples sharing a name end up in one family even if their label sets
    differ, so the encoder never emits the same family twice.
    """
    families: Dict[str, Metric] = {}
    for sample in samples:
        family = families.get(sample.name)
        if family is None:
            family = Metric(sample.name, sample.documentation, sample.kind.value)
            families[sample.name] = family
        sample_name = family.name + "_total" if sample.kind is ValueKind.COUNTER else family.name
        family.add_sample(sample_name, sample.label_dict, sample.value)
    return list(families.values())
