"""Policy sync: the policy object itself, then its conditions."""

from __future__ import annotations

from alertsync.core.errors import AlertSyncError, ExternalNotFoundError
from alertsync.core.logging import get_logger
from alertsync.core.protocols import AlertingAPI
from alertsync.domain.policy import AlertPolicy
from alertsync.newrelic.conditions import ConditionRepository

logger = get_logger(__name__)


class PolicyRepository:
    """Creates, updates and deletes alert policies.

    ``save`` returns the policy id. When a failure happens after the
    policy exists externally, the raised error carries that id in
    ``error.context.external_id`` so the caller can still record it. Other exceptions are
    wrapped in ``AlertSyncError`` to carry it.
    """

    def __init__(self, api: AlertingAPI, conditions: ConditionRepository | None = None):
        self._api = api
        self._conditions = conditions or ConditionRepository(api)

    def save(self, policy: AlertPolicy) -> int:
        policy_id = policy.status.external_id
        payload = policy.spec.policy_payload()
        existing = False

        if policy_id is not None:
            try:
                self._api.put(f"alerts_policies/{policy_id}.json", payload)
                existing = True
            except ExternalNotFoundError:
                logger.warning("policy_missing_externally", policy_id=policy_id)
                policy_id = None

        if policy_id is None:
            body = self._api.post("alerts_policies.json", payload)
            policy_id = int(body["policy"]["id"])
            logger.info("policy_created", policy_id=policy_id, policy=policy.spec.name)

        try:
            self._conditions.sync(policy_id, policy.spec.conditions(), existing=existing)
        except AlertSyncError as e:
            raise e.with_context(external_id=policy_id)
        except Exception as e:
            raise AlertSyncError(str(e) or type(e).__name__, cause=e).with_context(external_id=policy_id) from e
        return policy_id

    def delete(self, policy_id: int | None) -> None:
        """Delete the policy (and with it every condition). Absent is fine."""
        if policy_id is None:
            return
        logger.info("deleting_policy", policy_id=policy_id)
        try:
            self._api.delete(f"alerts_policies/{policy_id}.json")
        except ExternalNotFoundError:
            logger.info("policy_already_absent", policy_id=policy_id)
