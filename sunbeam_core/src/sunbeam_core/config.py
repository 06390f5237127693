"""Client configuration for Sunbeam.

Configuration is composed by Hydra from ``conf/`` and validated here into
frozen pydantic models. Library users may also build ClientConfig from a
plain dict.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, field_validator

# ==============================================================================
# Defaults
# ==============================================================================
DEFAULT_REQUEST_TIMEOUT_MS: Final[float] = 10_000.0
DEFAULT_TOKEN_CONTRACT: Final[str] = "eosio.token"
DEFAULT_EXCHANGE_CONTRACT: Final[str] = "efinexchange"
DEFAULT_CONNECT_ATTEMPTS: Final[int] = 3

PUBLIC_ROLE: Final[str] = "pub"
PRIVATE_ROLE: Final[str] = "priv"
AUX_ROLE: Final[str] = "aux"


class _Config(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class StaticKeys(_Config):
    """Statically configured signing identity."""

    account: str = Field(..., min_length=1)
    permission: str = Field(default="active", min_length=1)


class InteractiveAuthConfig(_Config):
    """Settings for an interactive identity provider."""

    app_name: str = Field(..., min_length=1)


class AuthConfig(_Config):
    """Identity source: static keys or an interactive provider."""

    keys: StaticKeys | None = None
    interactive: InteractiveAuthConfig | None = None


class EosConfig(_Config):
    """Chain-side settings.

    Attributes:
        token_contract: Token contract name.
        exchange_contract: Contract that signatures are scoped to.
        http_endpoint: Chain node URL used to build the network descriptor.
        auth: Identity source.
    """

    token_contract: str = DEFAULT_TOKEN_CONTRACT
    exchange_contract: str = DEFAULT_EXCHANGE_CONTRACT
    http_endpoint: str | None = None
    auth: AuthConfig = Field(default_factory=AuthConfig)


class ClientConfig(_Config):
    """Top-level client configuration.

    Attributes:
        urls: Channel role to endpoint address.
        request_timeout: Default reply deadline in milliseconds.
        eos: Chain-side settings.
        hooks: Declared dispatch hooks (hook name -> pushed category).
        max_listeners: Optional listener warning threshold per channel.
        connect_attempts: Handshake attempts per channel.
    """

    urls: dict[str, str] = Field(..., min_length=1)
    request_timeout: PositiveFloat = DEFAULT_REQUEST_TIMEOUT_MS
    eos: EosConfig = Field(default_factory=EosConfig)
    hooks: dict[str, str] = Field(default_factory=dict)
    max_listeners: int | None = Field(default=None, ge=0)
    connect_attempts: int = Field(default=DEFAULT_CONNECT_ATTEMPTS, ge=1)

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject empty endpoint addresses."""
        for role, url in v.items():
            if not url:
                msg = f"Channel {role!r} has no endpoint address"
                raise ValueError(msg)
        return v

    @property
    def exchange_contract(self) -> str:
        return self.eos.exchange_contract

    @property
    def token_contract(self) -> str:
        return self.eos.token_contract

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | DictConfig) -> ClientConfig:
        """Validate a plain mapping or a resolved Hydra config node."""
        if isinstance(data, DictConfig):
            data = OmegaConf.to_container(data, resolve=True)  # type: ignore[assignment]
        return cls.model_validate(dict(data))

    def with_keys(self, keys: StaticKeys | None) -> ClientConfig:
        """Copy of this config with a different static identity."""
        auth = self.eos.auth.model_copy(update={"keys": keys})
        eos = self.eos.model_copy(update={"auth": auth})
        return self.model_copy(update={"eos": eos})
