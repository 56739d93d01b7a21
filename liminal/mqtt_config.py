"""Connection settings shared by MQTT subscribers and publishers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Mapping, Optional

DEFAULT_BROKER_URL = "mqtt://localhost:1883"
DEFAULT_PORT = 1883
_SCHEME = "mqtt://"


class QoS(IntEnum):
    """MQTT delivery guarantee."""

    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_optional_str(value: Any) -> bool:
    return value is None or isinstance(value, str)


def _param(
    parameters: Mapping[str, Any], key: str, default: Any, accepts: Callable[[Any], bool]
) -> Any:
    value = parameters.get(key, default)
    return value if accepts(value) else default


@dataclass
class MqttConnectionConfig:
    """Broker address, identity and session options of an MQTT client."""

    broker_url: str = DEFAULT_BROKER_URL
    client_id: Optional[str] = None
    qos: int = 0
    clean_session: bool = True
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_parameters(
        cls, parameters: Optional[Mapping[str, Any]]
    ) -> "MqttConnectionConfig":
        """Build a configuration from stage parameters.

        Missing values, and values of the wrong type, take their defaults.
        """
        params = parameters or {}
        return cls(
            broker_url=_param(
                params, "broker_url", DEFAULT_BROKER_URL, lambda v: isinstance(v, str)
            ),
            client_id=_param(params, "client_id", None, _is_optional_str),
            qos=_param(params, "qos", 0, lambda v: _is_int(v) and 0 <= v <= 0xFF),
            clean_session=_param(
                params, "clean_session", True, lambda v: isinstance(v, bool)
            ),
            username=_param(params, "username", None, _is_optional_str),
            password=_param(params, "password", None, _is_optional_str),
        )

    def validate(self) -> None:
        """Raise ``ValueError`` for a QoS above 2 or an empty broker URL."""
        if self.qos > 2:
            raise ValueError("QoS must be between 0 and 2")
        if not self.broker_url:
            raise ValueError("Broker URL cannot be empty")

    def parse_broker_url(self) -> tuple[str, int]:
        """Split the broker URL into host and port; the port defaults to 1883."""
        url = self.broker_url
        address = url[len(_SCHEME):] if url.startswith(_SCHEME) else url
        host, colon, port_text = address.partition(":")
        if not colon:
            return address, DEFAULT_PORT
        digits = port_text[1:] if port_text.startswith("+") else port_text
        if not digits or not (digits.isascii() and digits.isdigit()):
            raise ValueError(f"Invalid port in broker URL: {url}")
        port = int(digits)
        if port > 0xFFFF:
            raise ValueError(f"Invalid port in broker URL: {url}")
        return host, port

    def quality_of_service(self) -> QoS:
        """The configured QoS; anything out of range means at-most-once."""
        try:
            return QoS(self.qos)
        except ValueError:
            return QoS.AT_MOST_ONCE

    def resolve_client_id(self, default_prefix: str) -> str:
        """The configured client id, or ``<prefix>_<random uuid>``."""
        if self.client_id is not None:
            return self.client_id
        return f"{default_prefix}_{uuid.uuid4()}"