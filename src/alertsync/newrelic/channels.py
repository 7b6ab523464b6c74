"""Notification channel sync: recreate on configuration change, diff links."""

from __future__ import annotations

from typing import Any

from alertsync.core.errors import AlertSyncError, ExternalNotFoundError
from alertsync.core.logging import get_logger
from alertsync.core.protocols import AlertingAPI
from alertsync.domain.channels import ExternalChannel
from alertsync.domain.compare import diff_links

logger = get_logger(__name__)

LINKS_ENDPOINT = "alerts_policy_channels.json"


class ChannelRepository:
    """Creates and deletes channels and keeps their policy links in step.

    REST v2 has no channel update, so a channel whose configuration hash
    differs from the applied one is deleted and created again. Like
    :class:`~alertsync.newrelic.policies.PolicyRepository`, a failure after
    the channel exists carries its id in ``error.context.external_id``.
    """

    def __init__(self, api: AlertingAPI):
        self._api = api

    def find(self, channel_id: int) -> dict[str, Any] | None:
        """Page through ``alerts_channels.json`` looking for ``channel_id``."""
        page = 1
        while True:
            body = self._api.get("alerts_channels.json", params={"page": page}) or {}
            channels = body.get("channels", [])
            for channel in channels:
                if int(channel["id"]) == channel_id:
                    return channel
            if not channels:
                return None
            page += 1

    def save(
        self,
        channel: ExternalChannel,
        *,
        external_id: int | None = None,
        applied_version: str | None = None,
    ) -> int:
        current = self.find(external_id) if external_id is not None else None

        if current is not None and applied_version == channel.config_version:
            channel_id = int(current["id"])
            linked = {int(pid) for pid in current.get("links", {}).get("policy_ids", [])}
        else:
            if current is not None:
                logger.info("channel_config_changed", channel_id=external_id)
                self.delete(external_id)
            channel_id = self._create(channel)
            linked = set()

        try:
            self._sync_links(channel_id, channel.policy_ids, linked)
        except AlertSyncError as e:
            raise e.with_context(external_id=channel_id)
        except Exception as e:
            raise AlertSyncError(str(e) or type(e).__name__, cause=e).with_context(external_id=channel_id) from e
        return channel_id

    def delete(self, channel_id: int | None) -> None:
        if channel_id is None:
            return
        logger.info("deleting_channel", channel_id=channel_id)
        try:
            self._api.delete(f"alerts_channels/{channel_id}.json")
        except ExternalNotFoundError:
            logger.info("channel_already_absent", channel_id=channel_id)

    def _create(self, channel: ExternalChannel) -> int:
        body = self._api.post("alerts_channels.json", channel.to_payload())
        channel_id = int(body["channels"][0]["id"])
        logger.info("channel_created", channel_id=channel_id, channel=channel.name, type=channel.type)
        return channel_id

    def _sync_links(self, channel_id: int, desired: frozenset[int], linked: set[int]) -> None:
        diff = diff_links(desired, linked)
        if diff.empty:
            return
        logger.info(
            "channel_link_diff",
            channel_id=channel_id,
            link=diff.to_create,
            unlink=diff.to_delete,
        )
        for policy_id in diff.to_create:
            self._api.put(LINKS_ENDPOINT, params={"policy_id": policy_id, "channel_ids": str(channel_id)})
        for policy_id in diff.to_delete:
            try:
                self._api.delete(LINKS_ENDPOINT, params={"policy_id": policy_id, "channel_id": channel_id})
            except ExternalNotFoundError:
                logger.info("channel_link_already_absent", channel_id=channel_id, policy_id=policy_id)
