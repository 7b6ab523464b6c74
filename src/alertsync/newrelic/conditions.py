"""Condition sync for one policy, across all three condition endpoints."""

from __future__ import annotations

from typing import Any, assert_never

from alertsync.core.errors import ExternalNotFoundError
from alertsync.core.logging import get_logger
from alertsync.core.protocols import AlertingAPI
from alertsync.domain.compare import ConditionSet, SetDiff, diff_conditions
from alertsync.domain.conditions import (
    ApmCondition,
    ConditionBase,
    InfraCondition,
    NrqlCondition,
)

logger = get_logger(__name__)

INFRA_PAGE_SIZE = 50


class ConditionRepository:
    """Lists, creates and deletes conditions under a policy."""

    def __init__(self, api: AlertingAPI):
        self._api = api

    def list_conditions(self, policy_id: int) -> list[ConditionBase]:
        """Every condition currently stored under ``policy_id``."""
        logger.info("listing_conditions", policy_id=policy_id)
        conditions: list[ConditionBase] = []

        body = self._api.get("alerts_nrql_conditions.json", params={"policy_id": policy_id}) or {}
        conditions.extend(NrqlCondition.from_payload(c) for c in body.get("nrql_conditions", []))

        body = self._api.get("alerts_conditions.json", params={"policy_id": policy_id}) or {}
        conditions.extend(ApmCondition.from_payload(c) for c in body.get("conditions", []))

        conditions.extend(InfraCondition.from_payload(c) for c in self._list_infra(policy_id))
        return conditions

    def _list_infra(self, policy_id: int) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            body = self._api.get(
                "alerts/conditions",
                params={"policy_id": policy_id, "offset": offset, "limit": INFRA_PAGE_SIZE},
                infra=True,
            ) or {}
            page = body.get("data", [])
            items.extend(page)
            if len(page) < INFRA_PAGE_SIZE:
                return items
            offset += len(page)

    def sync(self, policy_id: int, desired: list[ConditionBase], *, existing: bool = True) -> SetDiff[ConditionBase]:
        """Make the stored conditions match ``desired``.

        Deletes are issued before creates. The first failing call aborts the
        rest; already-applied calls are not rolled back. A policy created in
        this same sync (``existing=False``) is known to be empty.
        """
        actual = self.list_conditions(policy_id) if existing else []
        diff = diff_conditions(ConditionSet(desired), ConditionSet(actual))
        logger.info(
            "condition_diff",
            policy_id=policy_id,
            to_create=len(diff.to_create),
            to_delete=len(diff.to_delete),
        )
        for condition in diff.to_delete:
            self.delete(condition)
        for condition in diff.to_create:
            self.create(policy_id, condition)
        return diff

    def create(self, policy_id: int, condition: ConditionBase) -> int:
        logger.info("creating_condition", policy_id=policy_id, kind=condition.kind, condition=condition.name)
        match condition:
            case NrqlCondition():
                body = self._api.post(
                    f"alerts_nrql_conditions/policies/{policy_id}.json",
                    {"nrql_condition": condition.to_payload()},
                )
                return int(body["nrql_condition"]["id"])
            case ApmCondition():
                body = self._api.post(
                    f"alerts_conditions/policies/{policy_id}.json",
                    {"condition": condition.to_payload()},
                )
                return int(body["condition"]["id"])
            case InfraCondition():
                body = self._api.post(
                    "alerts/conditions",
                    {"data": condition.to_payload(policy_id)},
                    infra=True,
                )
                return int(body["data"]["id"])
            case _:
                assert_never(condition)

    def delete(self, condition: ConditionBase) -> None:
        """Delete by external id; an already-absent condition is fine."""
        condition_id = condition.external_id
        if condition_id is None:
            return
        logger.info("deleting_condition", condition_id=condition_id, kind=condition.kind, condition=condition.name)
        try:
            match condition:
                case NrqlCondition():
                    self._api.delete(f"alerts_nrql_conditions/{condition_id}.json")
                case ApmCondition():
                    self._api.delete(f"alerts_conditions/{condition_id}.json")
                case InfraCondition():
                    self._api.delete(f"alerts/conditions/{condition_id}", infra=True)
                case _:
                    assert_never(condition)
        except ExternalNotFoundError:
            logger.info("condition_already_absent", condition_id=condition_id)
