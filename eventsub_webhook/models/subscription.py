"""EventSub subscription records as returned by Helix."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventsub_webhook.timeutil import normalize_timestamp


class Condition(BaseModel):
    """Subscription condition.

    Only the fields relevant to a subscription type are populated; the rest
    stay ``None``. Equality is structural across every field, so compare
    conditions of the same subscription type only.
    """

    model_config = ConfigDict(extra="ignore")

    broadcaster_user_id: str | None = None
    moderator_user_id: str | None = None
    user_id: str | None = None
    from_broadcaster_user_id: str | None = None
    to_broadcaster_user_id: str | None = None
    # int or string depending on subscription type
    reward_id: str | int | None = None
    client_id: str | None = None
    extension_client_id: str | None = None
    conduit_id: str | None = None
    organization_id: str | None = None
    category_id: str | None = None
    campaign_id: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        """Helix may echo unused fields as empty strings"""
        if v == "":
            return None
        return v

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SubscriptionTransport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    method: str = ""
    callback: str = ""


class Subscription(BaseModel):
    """A remote EventSub subscription."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    status: str = ""
    type: str = ""
    version: str = ""
    cost: int = 0
    condition: Condition = Field(default_factory=Condition)
    transport: SubscriptionTransport = Field(default_factory=SubscriptionTransport)
    created_at: datetime | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def trim_nanoseconds(cls, v: Any) -> Any:
        if isinstance(v, str):
            return normalize_timestamp(v) if v else None
        return v


class WebhookPayload(BaseModel):
    """Body of an inbound EventSub callback."""

    model_config = ConfigDict(extra="ignore")

    challenge: str = ""
    subscription: Subscription
    event: dict[str, Any] | None = None
