import uuid

import pytest

from liminal.mqtt_config import DEFAULT_BROKER_URL, MqttConnectionConfig, QoS


def test_defaults_from_empty_parameters():
    config = MqttConnectionConfig.from_parameters(None)
    assert config.broker_url == "mqtt://localhost:1883"
    assert config.client_id is None
    assert config.qos == 0
    assert config.clean_session is True
    assert config.username is None
    assert config.password is None


def test_parameters_are_taken_over():
    password = "password"
    config = MqttConnectionConfig.from_parameters(
        {
            "broker_url": "mqtt://broker.example.com:8883",
            "client_id": "sensor-reader",
            "qos": 2,
            "clean_session": False,
            "username": "user",
            "password": password,
        }
    )
    assert config.broker_url == "mqtt://broker.example.com:8883"
    assert config.client_id == "sensor-reader"
    assert config.qos == 2
    assert config.clean_session is False
    assert config.username == "user"
    assert config.password == password


def test_wrong_types_fall_back_to_defaults():
    config = MqttConnectionConfig.from_parameters(
        {"broker_url": 5, "qos": "high", "clean_session": "yes", "client_id": 7}
    )
    assert config == MqttConnectionConfig.from_parameters({})


def test_qos_out_of_byte_range_falls_back():
    assert MqttConnectionConfig.from_parameters({"qos": 300}).qos == 0


def test_validate_accepts_defaults():
    config = MqttConnectionConfig()
    config.validate()
    assert config.broker_url == DEFAULT_BROKER_URL


def test_validate_rejects_large_qos():
    config = MqttConnectionConfig.from_parameters({"qos": 3})
    with pytest.raises(ValueError, match="QoS must be between 0 and 2"):
        config.validate()


def test_validate_rejects_empty_broker():
    with pytest.raises(ValueError, match="Broker URL cannot be empty"):
        MqttConnectionConfig(broker_url="").validate()


@pytest.mark.parametrize(
    "url, expected",
    [
        ("mqtt://localhost:1883", ("localhost", 1883)),
        ("mqtt://broker.example.com:8883", ("broker.example.com", 8883)),
        ("broker.example.com:1884", ("broker.example.com", 1884)),
        ("mqtt://broker.example.com", ("broker.example.com", 1883)),
        ("localhost", ("localhost", 1883)),
    ],
)
def test_parse_broker_url(url, expected):
    assert MqttConnectionConfig(broker_url=url).parse_broker_url() == expected


@pytest.mark.parametrize(
    "url", ["mqtt://host:abc", "mqtt://host:70000", "mqtt://host:", "host:-1"]
)
def test_parse_broker_url_rejects_bad_port(url):
    with pytest.raises(ValueError, match="Invalid port in broker URL"):
        MqttConnectionConfig(broker_url=url).parse_broker_url()


@pytest.mark.parametrize(
    "level, expected",
    [(0, QoS.AT_MOST_ONCE), (1, QoS.AT_LEAST_ONCE), (2, QoS.EXACTLY_ONCE), (9, QoS.AT_MOST_ONCE)],
)
def test_quality_of_service(level, expected):
    assert MqttConnectionConfig(qos=level).quality_of_service() is expected


def test_resolve_client_id_uses_configured_id():
    config = MqttConnectionConfig(client_id="reader")
    assert config.resolve_client_id("liminal") == "reader"


def test_resolve_client_id_generates_unique_ids():
    config = MqttConnectionConfig()
    first = config.resolve_client_id("liminal_out")
    second = config.resolve_client_id("liminal_out")
    assert first.startswith("liminal_out_")
    assert str(uuid.UUID(first[len("liminal_out_"):])) == first[len("liminal_out_"):]
    assert first != second