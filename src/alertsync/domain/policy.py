"""AlertPolicy resource."""

from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import Field

from alertsync.core.hashing import config_version
from alertsync.domain.conditions import (
    ApmCondition,
    ConditionBase,
    InfraCondition,
    NrqlCondition,
)
from alertsync.domain.meta import CamelModel, Resource

IncidentPreference = Literal["PER_POLICY", "PER_CONDITION", "PER_CONDITION_AND_TARGET"]


class AlertPolicySpec(CamelModel):
    """Desired policy: its name, rollup preference and conditions."""

    name: str = Field(..., min_length=1)
    incident_preference: IncidentPreference = "PER_POLICY"
    nrql_conditions: list[NrqlCondition] = Field(default_factory=list)
    apm_conditions: list[ApmCondition] = Field(default_factory=list)
    infra_conditions: list[InfraCondition] = Field(default_factory=list)

    def conditions(self) -> list[ConditionBase]:
        return [*self.nrql_conditions, *self.apm_conditions, *self.infra_conditions]

    def policy_payload(self) -> dict[str, Any]:
        return {"policy": {"name": self.name, "incident_preference": self.incident_preference}}


class AlertPolicy(Resource):
    KIND: ClassVar[str] = "AlertPolicy"

    kind: Literal["AlertPolicy"] = "AlertPolicy"
    spec: AlertPolicySpec

    def config_version(self) -> str:
        return config_version(self.spec.model_dump(mode="json"))
