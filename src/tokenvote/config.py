"""Client configuration for tokenvote."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from tokenvote._constants import DEFAULT_CATALOG_URL
from tokenvote.exceptions import TokenVoteConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class TokenVoteConfig:
    """Session configuration.

    Parameters
    ----------
    catalog_url : str
        Endpoint returning the token catalog as a JSON array.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    firestore_project_id : str or None
        Google Cloud project hosting the tally collection. When unset the
        session falls back to the in-process memory store.
    firestore_api_key : str or None
        Web API key appended as ``?key=`` to Firestore REST calls.
    firestore_database : str
        Firestore database id.
    collection : str
        Collection holding one document per voted address.
    poll_interval : float
        Seconds between collection re-reads of the live tally feed.
    max_poll_failures : int
        Consecutive failed re-reads after which the feed reports an error
        and stops.
    mqtt_enabled : bool
        Publish and listen for change notices over MQTT when a broker
        host is configured.
    mqtt_host : str or None
        MQTT broker host name.
    mqtt_port : int
        MQTT broker port.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_username, mqtt_password : str or None
        Broker credentials.
    mqtt_topic_prefix : str
        Prefix of the change-notice topic (``<prefix>/<collection>``).
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    catalog_url: str = DEFAULT_CATALOG_URL
    request_timeout: float = 15.0
    firestore_project_id: str | None = None
    firestore_api_key: str | None = None
    firestore_database: str = "(default)"
    collection: str = "coins"
    poll_interval: float = 5.0
    max_poll_failures: int = 3
    mqtt_enabled: bool = True
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_tls: bool = False
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_topic_prefix: str = "tokenvote"
    mqtt_keepalive: int = 60

    @property
    def backend(self) -> str:
        """Tally backend selected by this configuration."""
        return "firestore" if self.firestore_project_id else "memory"

    @property
    def mqtt_active(self) -> bool:
        """Whether change notices should go over MQTT."""
        return self.mqtt_enabled and bool(self.mqtt_host)

    @property
    def notice_topic(self) -> str:
        return f"{self.mqtt_topic_prefix.rstrip('/')}/{self.collection}"

    def validate(self) -> TokenVoteConfig:
        """Check value ranges and return ``self``."""
        if self.request_timeout <= 0:
            raise TokenVoteConfigError("request_timeout must be positive")
        if self.poll_interval <= 0:
            raise TokenVoteConfigError("poll_interval must be positive")
        if self.max_poll_failures < 1:
            raise TokenVoteConfigError("max_poll_failures must be at least 1")
        if not self.collection.strip() or "/" in self.collection:
            raise TokenVoteConfigError(f"Invalid collection name: {self.collection!r}")
        if not self.catalog_url.startswith(("http://", "https://")):
            raise TokenVoteConfigError(f"catalog_url must be an http(s) URL: {self.catalog_url!r}")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> TokenVoteConfig:
        """Create configuration from ``TOKENVOTE_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        TokenVoteConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TOKENVOTE_CATALOG_URL": "catalog_url",
            "TOKENVOTE_FIRESTORE_PROJECT_ID": "firestore_project_id",
            "TOKENVOTE_FIRESTORE_API_KEY": "firestore_api_key",
            "TOKENVOTE_FIRESTORE_DATABASE": "firestore_database",
            "TOKENVOTE_COLLECTION": "collection",
            "TOKENVOTE_MQTT_HOST": "mqtt_host",
            "TOKENVOTE_MQTT_USERNAME": "mqtt_username",
            "TOKENVOTE_MQTT_PASSWORD": "mqtt_password",
            "TOKENVOTE_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "TOKENVOTE_REQUEST_TIMEOUT": ("request_timeout", float),
            "TOKENVOTE_POLL_INTERVAL": ("poll_interval", float),
            "TOKENVOTE_MAX_POLL_FAILURES": ("max_poll_failures", int),
            "TOKENVOTE_MQTT_PORT": ("mqtt_port", int),
            "TOKENVOTE_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        for env_key, (field_name, kind) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = kind(val)
            except ValueError as exc:
                raise TokenVoteConfigError(f"{env_key} is not a valid {kind.__name__}: {val!r}") from exc

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("TOKENVOTE_MQTT_ENABLED"), True)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("TOKENVOTE_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
