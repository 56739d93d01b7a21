"""Building blocks for JSON data processing pipelines: field paths,
conditions, expressions, rules, file output, TCP framing, MQTT settings
and a processor registry."""

__version__ = "0.1.0"

__all__ = [
    "conditions",
    "expression",
    "factory",
    "fields",
    "file_output",
    "mqtt_config",
    "rules",
    "tcp",
]