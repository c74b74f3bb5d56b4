# espat

`espat` works with the text AT-command interface of ESP8266 Wi-Fi modules.
It builds the command lines sent to the module. It also parses the byte stream
the module sends back: command responses, link status lines and incoming
`+IPD` network data. You supply the transport: a function that writes bytes
to the module, and the bytes you read back.

The package has no dependencies outside the standard library. Its tests use
pytest, which the `test` extra installs.

## Modules

- `espat.util`: text helpers the protocol relies on.
  - `parse_first_number(data, pos, base)` skips to the first number at or after
    `pos`. A `-` directly before the digits makes it negative. It returns the
    value and the position after the last digit.
  - `number_to_str(num, base)` formats in decimal or lower-case hexadecimal.
  - `parse_until_token(src, token, limit)` returns the text before `token`. It
    raises `TokenNotFoundError` when the token is not within the first `limit`
    characters.
  - `is_valid_ascii` and `hex_char_value` classify single characters.
  - `DigitBase` selects decimal or hexadecimal.
- `espat.system`: operating-system services.
  - `LowLevelDriver` is built from a `send_fn(data, timeout)` callable, an
    optional `reset_fn(state)` for a hardware reset line, and a `sleep_fn`.
    Its methods are `send`, `reset` and `delay`.
  - `Mailbox` is a bounded FIFO with `put`, `get` and `put_nowait`. Block times
    are in milliseconds. `put` and `get` raise `TimeoutError` on expiry.
  - `SchedulerState` names the states of a task scheduler.
- `espat.pktbuf`: `PacketBuffer`, a fixed-size payload that can be chained to
  others.
  - `copy_from` raises `BufferError` when the data does not fit.
  - `append` chains a buffer.
  - `chain()` or iteration walks the chain.
- `espat.model`: the shared state and value types.
  - `EspState`, `Device`, `Connection`, `Ipd` and `Message`.
  - The `Command`, `Result`, `ConnType` and `EventType` enumerations.
  - `IpAddress`, `MacAddress`, `FirmwareVersion`, `AccessPoint`,
    `JoinedAccessPoint` and `NetAttr`.
  - `EspError`, an exception that carries a `Result`.
- `espat.commands`: command lines.
  - `build_command(msg, state)` returns the full line for a `Message`, with
    `AT` at the front and CR LF at the end.
  - `init_at_command` sends that line through the driver. For `Command.RESET`,
    it pulses the hardware reset line instead when one is configured.
  - `start_send_data` sends a `CIPSEND` payload.
  - `format_ip` and `format_mac` format addresses.
- `espat.response`: single response lines.
  - `parse_response_line(state, line)` updates the current message and the
    device state. It returns True when the response has ended.
  - `parse_ip`, `parse_mac`, `parse_version`, `parse_found_ap` and
    `parse_joined_ap` parse the individual fields.
- `espat.connection`: links and incoming data.
  - `parse_net_conn_status` tracks `<id>,CONNECT`, `<id>,CLOSED` and
    `+LINK_CONN:` lines.
  - `ipd_setup`, `ipd_copy_data` and `ipd_reset` collect `+IPD` data into
    chained packet buffers.
- `espat.receiver`: `ResponseReceiver`. Feed it raw bytes as they arrive.
  - It splits the bytes into lines and dispatches each complete line.
  - It gathers `+IPD` payloads. When a payload is complete, it calls the
    connection's callback with `EventType.CONN_RECV`.
  - It sends the pending `CIPSEND` payload when the module prompts with `> `.
  - `feed` returns True once the current command's response has ended.

## Example

```python
from espat.commands import init_at_command
from espat.model import Command, EspState, Message
from espat.receiver import ResponseReceiver
from espat.system import LowLevelDriver

sent = []
state = EspState(driver=LowLevelDriver(send_fn=lambda data, timeout: sent.append(data)))
receiver = ResponseReceiver(state)

msg = Message(Command.GMR)
state.msg = msg
init_at_command(msg, state)            # sent == [b"AT+GMR\r\n"]

done = receiver.feed(b"AT version:1.7.4.0\r\nSDK version:3.0.4\r\nOK\r\n")
# done is True, msg.res is Result.OK
# state.dev.version_at == FirmwareVersion(1, 7, 4), state.dev_present is True
```

## What it does not do

- It opens no serial port and reads nothing by itself.
- It runs no worker threads or request queue to drive messages. You set
  `EspState.msg`, send it, and feed the replies to the receiver yourself.
- It offers no higher-level calls such as "join an access point" or "open a
  TCP client". You build those from `Message` objects.
- It implements no application protocols such as HTTP or MQTT.
- Several `Command` values, including `UART`, the GPIO commands, WPS, mDNS,
  DNS and SNTP, are accepted but go out as a bare `AT` line.