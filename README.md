# liminal

Building blocks for data processing pipelines that move JSON payloads
(plain Python dicts, lists, strings, numbers, booleans and `None`)
between stages. The package has no third-party dependencies.

- **Field paths** (`liminal.fields`): `extract_field_value`,
  `set_field_value`, `remove_field_value` and `field_exists` work on nested
  objects with dot notation such as `device.id`.
- **Conditions** (`liminal.conditions`): `parse_operation` and
  `evaluate_condition` compare field values with `equals`/`==`,
  `not_equals`/`!=`, `startswith`, `endswith`, `contains`, `>`, `>=`, `<`
  and `<=`; `evaluate_filter_condition` evaluates strings such as
  `"startswith 'esp'"`, `"> 20"` or `"== true"`.
- **Expressions** (`liminal.expression`): `evaluate_expression` evaluates
  arithmetic over payload fields, e.g. `sqrt(x * x + y * y)`, and must
  produce a float; otherwise it raises `ExpressionError`.
- **Rules** (`liminal.rules`): `RuleProcessor` runs conditional actions on
  payloads: set, remove, copy, rename, compute, keep only some fields, or
  drop the message.
- **File output** (`liminal.file_output`): `FileOutputProcessor` writes
  payloads as JSON lines, pretty JSON, CSV rows or text.
- **TCP framing** (`liminal.tcp`): `TcpConnection` exchanges messages
  prefixed by a 4-byte big-endian length over an asyncio stream, as client
  or as single-peer server.
- **MQTT settings** (`liminal.mqtt_config`): `MqttConnectionConfig` reads,
  validates and interprets broker connection parameters.
- **Processor registry** (`liminal.factory`): create processors by type
  name and register your own.

## Installation

```
pip install .
```

## Field paths

```python
from liminal.fields import extract_field_value, set_field_value

payload = {"device": {"id": "sensor-0000"}}
extract_field_value(payload, "device.id")         # "sensor-0000"
extract_field_value(payload, "device.kind", "?")  # "?"
set_field_value(payload, "reading.x", 1.5)
# {"device": {"id": "sensor-0000"}, "reading": {"x": 1.5}}
```

`set_field_value` changes the payload in place and returns it; a payload
that is not a dict is replaced by a new one, which is returned.

## Rules

```python
from liminal.rules import RuleProcessor

processor = RuleProcessor("classify", {
    "rules": [
        {
            "condition": {"field_path": "temperature", "operation": ">", "value": 30},
            "actions": [
                {"type": "set_field", "field_path": "alert", "value": True},
                {"type": "compute_field", "field_path": "fahrenheit",
                 "expression": "temperature * 9 / 5 + 32"},
            ],
            "else_actions": [{"type": "drop_message"}],
        }
    ],
    "error_strategy": "continue",
})

processor.process_payload({"temperature": 35})
# {"temperature": 35, "alert": True, "fahrenheit": 95.0}

processor.process_payload({"temperature": 20})
# None: the message was dropped
```

Action types are `set_field`, `remove_field`, `copy_field`,
`rename_field`, `compute_field`, `keep_only_fields`, `drop_message` and
`pass_through`. Error strategies are `continue`, `skip`, `abort` and
`use_default`; only `abort` makes a failing action raise `RuleError`.

Within one action list, `compute_field` expressions are all evaluated
against the payload as it was before any action ran, and an expression
that fails yields `0.0`. `keep_only_fields` is applied before the other
transforms. An invalid configuration raises `RuleError` when the
processor is created.

## File output

```python
from liminal.file_output import FileOutputProcessor

with FileOutputProcessor("log", {"file_path": "logs/out.jsonl", "format": "json"}) as out:
    out.write_payload("sensors", {"value": 1.5})
```

Formats are `json` (one object per line), `pretty` (indented JSON),
`csv` (the values of an object, ordered by key, strings quoted) and
`text` (`[channel] {...}`). Object keys are written in sorted order.
Other parameters are `append` (default `True`), `create_dirs` (default
`True`), `buffer_size` (default `8192`) and `auto_flush` (default
`False`). `format_payload` renders a single record without writing it.

## TCP

```python
from liminal.tcp import TcpConfig, TcpConnection

config = TcpConfig.from_parameters({"mode": "client", "host": "localhost", "port": 9000})
config.validate()
connection = TcpConnection("link", config)

await connection.ensure_connection()
await connection.send_message(b'{"value": 1}')
reply = await connection.receive_message()
connection.disconnect()
```

Failures to connect, send or receive raise `TcpError`. In server mode,
`ensure_connection` listens and accepts exactly one peer.

## Processor registry

```python
from liminal.factory import create_processor, list_processors, register_processor

sorted(list_processors())  # ["file", "rule"]
rule = create_processor("rule", {"rules": [
    {"condition": {"field_path": "id", "operation": "==", "value": 1},
     "actions": [{"type": "pass_through"}]},
]})

register_processor("echo", lambda name, parameters: (name, parameters))
create_processor("echo", {"x": 1})  # ("echo", {"x": 1})
```

Asking for a type that is not registered raises
`liminal.factory.ProcessorNotFoundError`.

## What the package does not do

- There is no pipeline runner, channel or message type: processors work
  on payloads that you hand them, and you wire stages together yourself.
- Only the `rule` and `file` processors are registered by default. There
  are no console, simulated-signal, fusion, MQTT or TCP processors.
- `liminal.mqtt_config` only holds connection settings; the package has
  no MQTT client and does not connect to a broker.
- There is no command-line program.

## Tests

```
pip install ".[test]"
pytest
```