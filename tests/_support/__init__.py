"""
Test support utilities for alertsync tests.

``FakeNewRelicAPI`` is an in-memory stand-in for the New Relic REST v2 and
Infrastructure APIs that satisfies the ``AlertingAPI`` protocol. It keeps
policies, conditions, channels and links in dicts, records every call, and
can be told to fail specific calls.

Builders (``make_policy``, ``make_slack_channel``, ...) produce resources
with sensible defaults so tests only spell out what they care about.
"""

from __future__ import annotations

import copy
import itertools
import re
from dataclasses import dataclass, field
from typing import Any

from alertsync.core.errors import ExternalAPIError, ExternalNotFoundError
from alertsync.domain.channels import EmailNotificationChannel, SlackNotificationChannel
from alertsync.domain.conditions import (
    ApmCondition,
    InfraCondition,
    InfraThreshold,
    NrqlCondition,
    Threshold,
)
from alertsync.domain.meta import ObjectMeta
from alertsync.domain.policy import AlertPolicy


@dataclass
class Call:
    method: str
    endpoint: str
    params: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None
    infra: bool = False


@dataclass
class _Fault:
    method: str
    pattern: str
    error: Exception
    times: int


@dataclass
class FakeNewRelicAPI:
    """In-memory New Relic alerting API."""

    channel_page_size: int = 2
    policies: dict[int, dict[str, Any]] = field(default_factory=dict)
    nrql_conditions: dict[int, dict[str, Any]] = field(default_factory=dict)
    apm_conditions: dict[int, dict[str, Any]] = field(default_factory=dict)
    infra_conditions: dict[int, dict[str, Any]] = field(default_factory=dict)
    channels: dict[int, dict[str, Any]] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)
    _faults: list[_Fault] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1000))

    # ── Fault injection ─────────────────────────────────────────────────

    def fail(self, method: str, pattern: str, error: Exception | None = None, *, times: int = 1) -> None:
        """Make the next ``times`` calls matching ``method`` and regex ``pattern`` raise."""
        error = error or ExternalAPIError(500, '{"error":{"title":"Internal error"}}')
        self._faults.append(_Fault(method, pattern, error, times))

    def _check_faults(self, method: str, endpoint: str) -> None:
        for fault in self._faults:
            if fault.method == method and re.search(fault.pattern, endpoint) and fault.times > 0:
                fault.times -= 1
                raise fault.error

    # ── Inspection ──────────────────────────────────────────────────────

    def calls_to(self, method: str, pattern: str = "") -> list[Call]:
        return [c for c in self.calls if c.method == method and re.search(pattern, c.endpoint)]

    def writes(self) -> list[Call]:
        return [c for c in self.calls if c.method != "GET"]

    def conditions_of(self, policy_id: int) -> list[dict[str, Any]]:
        return [
            c
            for table in (self.nrql_conditions, self.apm_conditions, self.infra_conditions)
            for c in table.values()
            if c["policy_id"] == policy_id
        ]

    def links_of(self, channel_id: int) -> set[int]:
        return set(self.channels[channel_id]["links"]["policy_ids"])

    # ── Seeding ─────────────────────────────────────────────────────────

    def seed_policy(self, name: str = "seeded", incident_preference: str = "PER_POLICY") -> int:
        policy_id = next(self._ids)
        self.policies[policy_id] = {"id": policy_id, "name": name, "incident_preference": incident_preference}
        return policy_id

    def seed_nrql(self, policy_id: int, condition: NrqlCondition) -> int:
        condition_id = next(self._ids)
        self.nrql_conditions[condition_id] = {**condition.to_payload(), "id": condition_id, "policy_id": policy_id}
        return condition_id

    def seed_channel(self, name: str, type: str, configuration: dict[str, Any], policy_ids=()) -> int:
        channel_id = next(self._ids)
        self.channels[channel_id] = {
            "id": channel_id,
            "name": name,
            "type": type,
            "configuration": dict(configuration),
            "links": {"policy_ids": sorted(policy_ids)},
        }
        return channel_id

    # ── AlertingAPI ─────────────────────────────────────────────────────

    def get(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        self.calls.append(Call("GET", endpoint, params=params, infra=infra))
        self._check_faults("GET", endpoint)
        params = params or {}

        if infra and endpoint == "alerts/conditions":
            items = self._for_policy(self.infra_conditions, params)
            offset, limit = int(params.get("offset", 0)), int(params.get("limit", 50))
            return {"data": items[offset : offset + limit]}
        if endpoint == "alerts_nrql_conditions.json":
            return {"nrql_conditions": self._for_policy(self.nrql_conditions, params)}
        if endpoint == "alerts_conditions.json":
            return {"conditions": self._for_policy(self.apm_conditions, params)}
        if endpoint == "alerts_channels.json":
            page = int(params.get("page", 1))
            items = [copy.deepcopy(c) for _, c in sorted(self.channels.items())]
            start = (page - 1) * self.channel_page_size
            return {"channels": items[start : start + self.channel_page_size]}
        raise ExternalNotFoundError(f"no route GET {endpoint}")

    def post(self, endpoint: str, payload: dict[str, Any], *, infra: bool = False) -> Any:
        self.calls.append(Call("POST", endpoint, payload=copy.deepcopy(payload), infra=infra))
        self._check_faults("POST", endpoint)

        if infra and endpoint == "alerts/conditions":
            data = payload["data"]
            self._require_policy(int(data["policy_id"]))
            condition_id = next(self._ids)
            self.infra_conditions[condition_id] = {**data, "id": condition_id}
            return {"data": copy.deepcopy(self.infra_conditions[condition_id])}
        if endpoint == "alerts_policies.json":
            policy_id = next(self._ids)
            self.policies[policy_id] = {**payload["policy"], "id": policy_id}
            return {"policy": dict(self.policies[policy_id])}
        if m := re.fullmatch(r"alerts_nrql_conditions/policies/(\d+)\.json", endpoint):
            return self._create_condition(self.nrql_conditions, int(m[1]), payload["nrql_condition"], "nrql_condition")
        if m := re.fullmatch(r"alerts_conditions/policies/(\d+)\.json", endpoint):
            return self._create_condition(self.apm_conditions, int(m[1]), payload["condition"], "condition")
        if endpoint == "alerts_channels.json":
            channel = payload["channel"]
            channel_id = self.seed_channel(channel["name"], channel["type"], channel["configuration"])
            return {"channels": [copy.deepcopy(self.channels[channel_id])]}
        raise ExternalNotFoundError(f"no route POST {endpoint}")

    def put(
        self,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
        infra: bool = False,
    ) -> Any:
        self.calls.append(Call("PUT", endpoint, params=params, payload=copy.deepcopy(payload), infra=infra))
        self._check_faults("PUT", endpoint)

        if m := re.fullmatch(r"alerts_policies/(\d+)\.json", endpoint):
            policy_id = int(m[1])
            self._require_policy(policy_id)
            self.policies[policy_id].update(payload["policy"])
            return {"policy": dict(self.policies[policy_id])}
        if endpoint == "alerts_policy_channels.json":
            policy_id = int(params["policy_id"])
            self._require_policy(policy_id)
            for channel_id in str(params["channel_ids"]).split(","):
                links = self._require_channel(int(channel_id))["links"]["policy_ids"]
                if policy_id not in links:
                    links.append(policy_id)
                    links.sort()
            return {"policy": {"id": policy_id}}
        raise ExternalNotFoundError(f"no route PUT {endpoint}")

    def delete(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        self.calls.append(Call("DELETE", endpoint, params=params, infra=infra))
        self._check_faults("DELETE", endpoint)

        if m := re.fullmatch(r"alerts_policies/(\d+)\.json", endpoint):
            policy_id = int(m[1])
            self._require_policy(policy_id)
            del self.policies[policy_id]
            for table in (self.nrql_conditions, self.apm_conditions, self.infra_conditions):
                for condition_id in [k for k, v in table.items() if v["policy_id"] == policy_id]:
                    del table[condition_id]
            for channel in self.channels.values():
                if policy_id in channel["links"]["policy_ids"]:
                    channel["links"]["policy_ids"].remove(policy_id)
            return None
        if m := re.fullmatch(r"alerts_nrql_conditions/(\d+)\.json", endpoint):
            return self._delete_from(self.nrql_conditions, int(m[1]))
        if m := re.fullmatch(r"alerts_conditions/(\d+)\.json", endpoint):
            return self._delete_from(self.apm_conditions, int(m[1]))
        if infra and (m := re.fullmatch(r"alerts/conditions/(\d+)", endpoint)):
            return self._delete_from(self.infra_conditions, int(m[1]))
        if m := re.fullmatch(r"alerts_channels/(\d+)\.json", endpoint):
            return self._delete_from(self.channels, int(m[1]))
        if endpoint == "alerts_policy_channels.json":
            channel = self._require_channel(int(params["channel_id"]))
            policy_id = int(params["policy_id"])
            if policy_id not in channel["links"]["policy_ids"]:
                raise ExternalNotFoundError("link not found")
            channel["links"]["policy_ids"].remove(policy_id)
            return None
        raise ExternalNotFoundError(f"no route DELETE {endpoint}")

    # ── Internals ───────────────────────────────────────────────────────

    def _for_policy(self, table: dict[int, dict[str, Any]], params: dict[str, Any]) -> list[dict[str, Any]]:
        policy_id = int(params["policy_id"])
        self._require_policy(policy_id)
        return [copy.deepcopy(c) for _, c in sorted(table.items()) if c["policy_id"] == policy_id]

    def _create_condition(self, table, policy_id: int, body: dict[str, Any], key: str) -> dict[str, Any]:
        self._require_policy(policy_id)
        condition_id = next(self._ids)
        table[condition_id] = {**copy.deepcopy(body), "id": condition_id, "policy_id": policy_id}
        return {key: copy.deepcopy(table[condition_id])}

    def _delete_from(self, table: dict[int, Any], item_id: int) -> None:
        if item_id not in table:
            raise ExternalNotFoundError("not found")
        del table[item_id]
        return None

    def _require_policy(self, policy_id: int) -> dict[str, Any]:
        if policy_id not in self.policies:
            raise ExternalNotFoundError('{"error":{"title":"Policy not found"}}')
        return self.policies[policy_id]

    def _require_channel(self, channel_id: int) -> dict[str, Any]:
        if channel_id not in self.channels:
            raise ExternalNotFoundError('{"error":{"title":"Channel not found"}}')
        return self.channels[channel_id]


# ── Builders ───────────────────────────────────────────────────────────────


def nrql(name: str = "high cpu", threshold: float = 80, **kwargs: Any) -> NrqlCondition:
    return NrqlCondition(
        name=name,
        query=kwargs.pop("query", "SELECT average(cpuPercent) FROM SystemSample"),
        alert_threshold=Threshold(value=threshold),
        **kwargs,
    )


def apm(name: str = "error rate", entities: list[int] | None = None, **kwargs: Any) -> ApmCondition:
    return ApmCondition(
        name=name,
        entities=entities if entities is not None else [1, 2],
        metric=kwargs.pop("metric", "error_percentage"),
        critical_threshold=Threshold(value=kwargs.pop("threshold", 5)),
        **kwargs,
    )


def infra(name: str = "disk full", **kwargs: Any) -> InfraCondition:
    return InfraCondition(
        name=name,
        select_value=kwargs.pop("select_value", "diskUsedPercent"),
        critical_threshold=InfraThreshold(value=kwargs.pop("threshold", 90)),
        **kwargs,
    )


def make_policy(
    name: str = "cpu",
    *,
    namespace: str = "default",
    labels: dict[str, str] | None = None,
    nrql_conditions: list[NrqlCondition] | None = None,
    apm_conditions: list[ApmCondition] | None = None,
    infra_conditions: list[InfraCondition] | None = None,
    policy_name: str | None = None,
) -> AlertPolicy:
    return AlertPolicy(
        metadata=ObjectMeta(name=name, namespace=namespace, labels=labels or {}),
        spec={
            "name": policy_name or f"{name} policy",
            "nrql_conditions": nrql_conditions or [],
            "apm_conditions": apm_conditions or [],
            "infra_conditions": infra_conditions or [],
        },
    )


def make_slack_channel(
    name: str = "platform-slack",
    *,
    namespace: str = "default",
    url: str = "https://hooks.slack.com/services/T000/B000/XXX",
    channel: str | None = "#alerts",
    selector: dict[str, str] | None = None,
) -> SlackNotificationChannel:
    return SlackNotificationChannel(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec={"name": f"{name} channel", "url": url, "channel": channel, "policy_selector": selector or {}},
    )


def make_email_channel(
    name: str = "oncall-email",
    *,
    recipients: list[str] | None = None,
    selector: dict[str, str] | None = None,
) -> EmailNotificationChannel:
    return EmailNotificationChannel(
        metadata=ObjectMeta(name=name),
        spec={
            "name": f"{name} channel",
            "recipients": recipients or ["oncall@example.com"],
            "policy_selector": selector or {},
        },
    )
