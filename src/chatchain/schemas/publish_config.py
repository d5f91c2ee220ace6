"""Credentials for the content-addressed publish target."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Configured(BaseModel):
    """Real publishing: every call goes to the pinning service."""

    mode: Literal["configured"] = "configured"
    api_key: str = Field(..., min_length=1, alias="apiKey")
    secret_key: str = Field(..., min_length=1, alias="secretKey")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def __repr__(self) -> str:
        return "Configured(api_key='***', secret_key='***')"


class Unconfigured(BaseModel):
    """Demo mode: every publish call is faked locally."""

    mode: Literal["unconfigured"] = "unconfigured"

    model_config = ConfigDict(frozen=True)


PublishConfig = Annotated[Configured | Unconfigured, Field(discriminator="mode")]

publish_config_adapter: TypeAdapter[Configured | Unconfigured] = TypeAdapter(PublishConfig)


def publish_config_from_keys(api_key: str | None, secret_key: str | None) -> Configured | Unconfigured:
    """Return ``Configured`` only when both keys are present and non-empty."""
    if api_key and secret_key:
        return Configured(api_key=api_key, secret_key=secret_key)
    return Unconfigured()
