"""Alert condition variants.

A policy holds three kinds of condition, each stored under its own New Relic
endpoint: NRQL conditions, APM metric conditions and Infrastructure
conditions. ``Condition`` is the tagged union over them, discriminated by
``kind``.

Identity for comparison is *semantic*: every field except ``external_id``.
``semantic_key()`` returns a hashable rendering of exactly those fields and
is what :class:`~alertsync.domain.compare.ConditionSet` indexes on.

``to_payload()``/``from_payload()`` convert to and from the REST wire shape.
The API echoes numbers back as strings and adds fields we never declare, so
``from_payload`` normalizes values and drops unknown keys; a condition read
back from the API is semantically equal to the one that created it.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from alertsync.domain.meta import CamelModel

Operator = Literal["above", "below", "equal"]
TimeFunction = Literal["all", "any"]


class _ConditionModel(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class Threshold(_ConditionModel):
    """A term: ``operator`` ``value`` for ``duration_minutes``."""

    operator: Operator = "above"
    value: float
    duration_minutes: int = Field(default=5, ge=1)
    time_function: TimeFunction = "all"

    def to_term(self, priority: str) -> dict[str, str]:
        return {
            "duration": str(self.duration_minutes),
            "operator": self.operator,
            "priority": priority,
            "threshold": _format_number(self.value),
            "time_function": self.time_function,
        }

    @classmethod
    def from_term(cls, term: dict[str, Any]) -> Threshold:
        return cls(
            operator=term.get("operator", "above"),
            value=float(term["threshold"]),
            duration_minutes=int(term.get("duration", 5)),
            time_function=term.get("time_function", "all"),
        )


class InfraThreshold(_ConditionModel):
    """Infrastructure thresholds; the comparison lives on the condition."""

    value: float
    duration_minutes: int = Field(default=5, ge=1)
    time_function: TimeFunction = "all"

    def to_payload(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "duration_minutes": self.duration_minutes,
            "time_function": self.time_function,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> InfraThreshold:
        return cls(
            value=float(data["value"]),
            duration_minutes=int(data.get("duration_minutes", 5)),
            time_function=data.get("time_function", "all"),
        )


class UserDefined(_ConditionModel):
    metric: str
    value_function: str = "average"


class ConditionBase(_ConditionModel):
    """Fields shared by every variant."""

    kind: str
    external_id: int | None = Field(default=None, exclude=True)
    name: str = Field(..., min_length=1)
    enabled: bool = True

    def semantic_key(self) -> tuple[str, str]:
        """Hashable identity over every field except ``external_id``."""
        fields = self.model_dump(mode="json", exclude={"external_id"})
        return (self.kind, json.dumps(fields, sort_keys=True))

    def semantically_equals(self, other: ConditionBase) -> bool:
        return self.semantic_key() == other.semantic_key()

    def with_external_id(self, external_id: int | None):
        return self.model_copy(update={"external_id": external_id})


class NrqlCondition(ConditionBase):
    """Static NRQL condition (``alerts_nrql_conditions``)."""

    kind: Literal["nrql"] = "nrql"
    query: str = Field(..., min_length=1)
    since_minutes: int = Field(default=3, ge=1)
    value_function: Literal["single_value", "sum"] = "single_value"
    alert_threshold: Threshold
    warning_threshold: Threshold | None = None
    runbook_url: str | None = None

    def to_payload(self) -> dict[str, Any]:
        terms = [self.alert_threshold.to_term("critical")]
        if self.warning_threshold is not None:
            terms.append(self.warning_threshold.to_term("warning"))
        payload: dict[str, Any] = {
            "type": "static",
            "name": self.name,
            "enabled": self.enabled,
            "value_function": self.value_function,
            "terms": terms,
            "nrql": {"query": self.query, "since_value": str(self.since_minutes)},
        }
        if self.runbook_url:
            payload["runbook_url"] = self.runbook_url
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> NrqlCondition:
        critical, warning = _split_terms(data.get("terms", []))
        nrql = data.get("nrql", {})
        return cls(
            external_id=_optional_int(data.get("id")),
            name=data["name"],
            enabled=bool(data.get("enabled", True)),
            query=nrql["query"],
            since_minutes=int(nrql.get("since_value", 3)),
            value_function=data.get("value_function", "single_value"),
            alert_threshold=Threshold.from_term(critical),
            warning_threshold=Threshold.from_term(warning) if warning else None,
            runbook_url=data.get("runbook_url") or None,
        )


class ApmCondition(ConditionBase):
    """APM application metric condition (``alerts_conditions``)."""

    kind: Literal["apm"] = "apm"
    type: str = "apm_app_metric"
    entities: list[int] = Field(default_factory=list)
    metric: str
    condition_scope: Literal["application", "instance"] = "application"
    critical_threshold: Threshold
    warning_threshold: Threshold | None = None
    user_defined: UserDefined | None = None
    runbook_url: str | None = None

    def semantic_key(self) -> tuple[str, str]:
        # Entity order is not meaningful to the API.
        fields = self.model_dump(mode="json", exclude={"external_id"})
        fields["entities"] = sorted(fields["entities"])
        return (self.kind, json.dumps(fields, sort_keys=True))

    def to_payload(self) -> dict[str, Any]:
        terms = [self.critical_threshold.to_term("critical")]
        if self.warning_threshold is not None:
            terms.append(self.warning_threshold.to_term("warning"))
        payload: dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "enabled": self.enabled,
            "entities": [str(entity) for entity in self.entities],
            "metric": self.metric,
            "condition_scope": self.condition_scope,
            "terms": terms,
        }
        if self.user_defined is not None:
            payload["user_defined"] = self.user_defined.model_dump()
        if self.runbook_url:
            payload["runbook_url"] = self.runbook_url
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ApmCondition:
        critical, warning = _split_terms(data.get("terms", []))
        user_defined = data.get("user_defined")
        return cls(
            external_id=_optional_int(data.get("id")),
            type=data.get("type", "apm_app_metric"),
            name=data["name"],
            enabled=bool(data.get("enabled", True)),
            entities=[int(entity) for entity in data.get("entities", [])],
            metric=data["metric"],
            condition_scope=data.get("condition_scope", "application"),
            critical_threshold=Threshold.from_term(critical),
            warning_threshold=Threshold.from_term(warning) if warning else None,
            user_defined=UserDefined(**user_defined) if user_defined else None,
            runbook_url=data.get("runbook_url") or None,
        )


class InfraCondition(ConditionBase):
    """Infrastructure metric condition (Infrastructure API ``alerts/conditions``)."""

    kind: Literal["infra"] = "infra"
    type: str = "infra_metric"
    comparison: Operator = "above"
    critical_threshold: InfraThreshold
    warning_threshold: InfraThreshold | None = None
    event_type: str = "SystemSample"
    select_value: str
    where_clause: str | None = None
    integration_provider: str | None = None
    process_where_clause: str | None = None

    def to_payload(self, policy_id: int) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "enabled": self.enabled,
            "policy_id": policy_id,
            "event_type": self.event_type,
            "select_value": self.select_value,
            "comparison": self.comparison,
            "critical_threshold": self.critical_threshold.to_payload(),
        }
        if self.warning_threshold is not None:
            payload["warning_threshold"] = self.warning_threshold.to_payload()
        for key in ("where_clause", "integration_provider", "process_where_clause"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> InfraCondition:
        warning = data.get("warning_threshold")
        return cls(
            external_id=_optional_int(data.get("id")),
            type=data.get("type", "infra_metric"),
            name=data["name"],
            enabled=bool(data.get("enabled", True)),
            comparison=data.get("comparison", "above"),
            critical_threshold=InfraThreshold.from_payload(data["critical_threshold"]),
            warning_threshold=InfraThreshold.from_payload(warning) if warning else None,
            event_type=data.get("event_type", "SystemSample"),
            select_value=data["select_value"],
            where_clause=data.get("where_clause") or None,
            integration_provider=data.get("integration_provider") or None,
            process_where_clause=data.get("process_where_clause") or None,
        )


Condition = Annotated[
    Union[NrqlCondition, ApmCondition, InfraCondition],
    Field(discriminator="kind"),
]


def _split_terms(terms: list[dict[str, Any]]) -> tuple[dict[str, Any], dict[str, Any] | None]:
    critical = next((t for t in terms if t.get("priority", "critical") == "critical"), None)
    warning = next((t for t in terms if t.get("priority") == "warning"), None)
    if critical is None:
        raise ValueError("condition has no critical term")
    return critical, warning


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
