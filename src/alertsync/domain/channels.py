"""Notification channel resources and their external shape.

Each channel kind declares its delivery configuration plus a
``policy_selector``. The policies a channel is linked to are not part of the
channel's spec: they are resolved from the selector on every reconcile and
handed to :meth:`NotificationChannel.to_channel`.

New Relic channels cannot be edited through REST v2, so the configuration
hash (``config_version``) decides whether the external channel has to be
recreated. Linked policies are excluded from the hash; they are synced as a
set of links instead.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from pydantic import Field

from alertsync.core.hashing import config_version
from alertsync.domain.meta import CamelModel, Resource


@dataclass(frozen=True)
class ExternalChannel:
    """Desired external channel: configuration plus linked policy ids."""

    name: str
    type: str
    configuration: dict[str, Any]
    policy_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def config_version(self) -> str:
        return config_version({"name": self.name, "type": self.type, "configuration": self.configuration})

    def to_payload(self) -> dict[str, Any]:
        return {"channel": {"name": self.name, "type": self.type, "configuration": self.configuration}}


class ChannelSpecBase(CamelModel):
    name: str = Field(..., min_length=1)
    policy_selector: dict[str, str] = Field(default_factory=dict)


class SlackChannelSpec(ChannelSpecBase):
    url: str = Field(..., min_length=1)
    channel: str | None = None


class EmailChannelSpec(ChannelSpecBase):
    recipients: list[str] = Field(..., min_length=1)
    include_json_attachment: bool = False


class NotificationChannel(Resource):
    """Base for channel kinds. Subclasses build the external configuration."""

    CHANNEL_TYPE: ClassVar[str] = ""

    spec: ChannelSpecBase

    @property
    def policy_selector(self) -> dict[str, str]:
        return self.spec.policy_selector

    @abstractmethod
    def configuration(self) -> dict[str, Any]:
        """The ``configuration`` object New Relic stores for this channel type."""

    def to_channel(self, policy_ids: frozenset[int] = frozenset()) -> ExternalChannel:
        return ExternalChannel(
            name=self.spec.name,
            type=self.CHANNEL_TYPE,
            configuration=self.configuration(),
            policy_ids=frozenset(policy_ids),
        )

    def config_version(self) -> str:
        return self.to_channel().config_version


class SlackNotificationChannel(NotificationChannel):
    KIND: ClassVar[str] = "SlackNotificationChannel"
    CHANNEL_TYPE: ClassVar[str] = "slack"

    kind: Literal["SlackNotificationChannel"] = "SlackNotificationChannel"
    spec: SlackChannelSpec

    def configuration(self) -> dict[str, Any]:
        config: dict[str, Any] = {"url": self.spec.url}
        if self.spec.channel:
            config["channel"] = self.spec.channel
        return config


class EmailNotificationChannel(NotificationChannel):
    KIND: ClassVar[str] = "EmailNotificationChannel"
    CHANNEL_TYPE: ClassVar[str] = "email"

    kind: Literal["EmailNotificationChannel"] = "EmailNotificationChannel"
    spec: EmailChannelSpec

    def configuration(self) -> dict[str, Any]:
        return {
            "recipients": ",".join(self.spec.recipients),
            "include_json_attachment": "true" if self.spec.include_json_attachment else "false",
        }


CHANNEL_KINDS: tuple[type[NotificationChannel], ...] = (
    SlackNotificationChannel,
    EmailNotificationChannel,
)
