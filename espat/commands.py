"""Build AT command text from request messages and hand it to the driver."""

from __future__ import annotations

from typing import Iterable

from espat.model import (
    Command,
    ConnType,
    EspError,
    EspState,
    EventType,
    IpAddress,
    MacAddress,
    Message,
    Result,
)
from espat.system import LowLevelDriver
from espat.util import CRLF, HW_RST_ASSERT, HW_RST_DEASSERT, DigitBase, is_valid_ascii, number_to_str

# Delay after releasing the reset line, in milliseconds.
_RESET_SETTLE_MS = 1000
# Block time used for non-blocking commands and for sending connection data.
_NONBLOCKING_SEND_MS = 100
_DATA_SEND_MS = 50

# Commands that are accepted but carry no arguments yet: they go out as a bare "AT".
_BARE_COMMANDS = frozenset(
    {
        Command.IDLE,
        Command.UART,
        Command.WAKEUPGPIO,
        Command.RFPOWER,
        Command.SYSRAM,
        Command.SYSADC,
        Command.SYSIOSETCFG,
        Command.SYSIOGETCFG,
        Command.SYSGPIODIR,
        Command.SYSGPIOWRITE,
        Command.SYSGPIOREAD,
        Command.WIFI_CWLAPOPT,
        Command.WIFI_CIPSTAMAC_GET,
        Command.WIFI_CIPSTAMAC_SET,
        Command.WIFI_CWAUTOCONN,
        Command.WIFI_CWSAP_GET,
        Command.WIFI_CWSAP_SET,
        Command.WIFI_CIPAPMAC_GET,
        Command.WIFI_CIPAPMAC_SET,
        Command.WIFI_CWLIF,
        Command.WIFI_WPS,
        Command.WIFI_MDNS,
        Command.WIFI_CWHOSTNAME_SET,
        Command.WIFI_CWHOSTNAME_GET,
        Command.TCPIP_CIPDOMAIN,
        Command.TCPIP_CIPDNS_SET,
        Command.TCPIP_CIPDNS_GET,
        Command.TCPIP_CIPRECVMODE,
        Command.TCPIP_CIPRECVDATA,
        Command.TCPIP_CIUPDATE,
        Command.TCPIP_CIPSNTPCFG,
        Command.TCPIP_CIPSNTPTIME,
    }
)

_SIMPLE = {
    Command.ATE0: "E0",
    Command.ATE1: "E1",
    Command.GMR: "+GMR",
    Command.RESTORE: "+RESTORE",
    Command.WIFI_CWJAP_GET: "+CWJAP_CUR?",
    Command.WIFI_CWQAP: "+CWQAP",
    Command.WIFI_CIPSTA_GET: "+CIPSTA_CUR?",
    Command.WIFI_CIPAP_GET: "+CIPAP_CUR?",
    Command.TCPIP_CIPSTATUS: "+CIPSTATUS",
    Command.TCPIP_CIFSR: "+CIFSR",
}


def _quoted(text: str) -> str:
    return '"' + text + '"'


def format_ip(ip: IpAddress) -> str:
    """Format an IP address as a quoted dotted string."""
    return _quoted(".".join(number_to_str(v, DigitBase.DECIMAL) for v in ip.octets))


def format_mac(mac: MacAddress) -> str:
    """Format a MAC address as colon-separated lower-case hex numbers."""
    return ":".join(number_to_str(v, DigitBase.HEX) for v in mac.octets)


def _body(msg: Message, state: EspState) -> str:
    cmd = msg.cmd
    if cmd in _BARE_COMMANDS:
        return ""
    if cmd in _SIMPLE:
        return _SIMPLE[cmd]
    if cmd is Command.RESET:
        return "+RST"
    if cmd is Command.GSLP:
        return "+GSLP=" + number_to_str(msg.sleep_ms)
    if cmd is Command.SYSMSG:
        return "+SYSMSG_CUR=" + ("2" if msg.ext_info_netconn else "0")
    if cmd is Command.WIFI_CWMODE:
        prefix = "+CWMODE_DEF=" if msg.save else "+CWMODE_CUR="
        return prefix + number_to_str(msg.wifi_mode, DigitBase.HEX)
    if cmd is Command.WIFI_CWJAP:
        prefix = "+CWJAP_DEF=" if msg.save else "+CWJAP_CUR="
        text = prefix + _quoted(msg.ssid or "") + "," + _quoted(msg.password)
        if msg.mac is not None:
            text += "," + _quoted(format_mac(msg.mac))
        return text
    if cmd is Command.WIFI_CWLAP:
        text = "+CWLAP"
        if msg.ssid:
            text += "=" + _quoted(msg.ssid)
        return text
    if cmd is Command.WIFI_CIPSTA_SET:
        return "+CIPSTA_DEF=" if msg.save else "+CIPSTA_CUR="
    if cmd is Command.WIFI_CIPAP_SET:
        prefix = "+CIPAP_DEF=" if msg.save else "+CIPAP_CUR="
        return prefix + ",".join(format_ip(ip) for ip in (msg.ip, msg.gateway, msg.netmask))
    if cmd is Command.TCPIP_CIPSTART:
        conn_id = state.connection_id(_require_conn(msg))
        proto = "TCP" if msg.conn_type is ConnType.TCP else "UDP"
        return (
            "+CIPSTART=" + number_to_str(conn_id, DigitBase.HEX) + ","
            + _quoted(proto) + "," + _quoted(msg.host) + "," + number_to_str(msg.port)
        )
    if cmd is Command.TCPIP_CIPCLOSE:
        return "+CIPCLOSE=" + number_to_str(state.connection_id(_require_conn(msg)))
    if cmd is Command.TCPIP_CIPSEND:
        conn_id = state.connection_id(_require_conn(msg))
        return "+CIPSEND=" + number_to_str(conn_id) + "," + number_to_str(len(msg.data))
    if cmd is Command.TCPIP_CIPMUX:
        return "+CIPMUX=" + number_to_str(msg.mux, DigitBase.HEX)
    if cmd is Command.TCPIP_CIPSERVER:
        return "+CIPSERVER=" + number_to_str(int(msg.server_enable)) + "," + number_to_str(msg.port)
    if cmd is Command.TCPIP_CIPSTO:
        return "+CIPSTO=" + number_to_str(msg.timeout)
    if cmd is Command.TCPIP_CIPMODE:
        return "+CIPMODE=" + number_to_str(msg.trans_mode, DigitBase.HEX)
    if cmd is Command.TCPIP_PING:
        return "+PING=" + _quoted(msg.host)
    if cmd is Command.TCPIP_CIPDINFO:
        return "+CIPDINFO=" + ("1" if msg.ext_info_ipd else "0")
    raise EspError(Result.ERR, f"unsupported command: {cmd.name}")


def _require_conn(msg: Message):
    if msg.conn is None:
        raise EspError(Result.ERR, f"{msg.cmd.name} needs a connection")
    return msg.conn


def _filter(chars: Iterable[int]) -> bytes:
    return bytes(c for c in chars if is_valid_ascii(c))


def build_command(msg: Message, state: EspState) -> bytes:
    """Return the full command line, "AT" prefix and CR LF included."""
    text = "AT" + _body(msg, state)
    return _filter(text.encode("latin-1")) + CRLF


def _driver(state: EspState) -> LowLevelDriver:
    if state.driver is None:
        raise RuntimeError("no low-level driver configured")
    return state.driver


def init_at_command(msg: Message, state: EspState) -> Result:
    """Start ``msg`` on the device.

    A reset is done on the hardware line when one is available, in which
    case no command text is sent and OK_NO_CMD_REQ is returned.
    """
    driver = _driver(state)
    if msg.cmd is Command.RESET:
        state.reset_device()
        if driver.can_reset:
            driver.reset(HW_RST_ASSERT)
            driver.delay(msg.delay_ms)
            driver.reset(HW_RST_DEASSERT)
            driver.delay(_RESET_SETTLE_MS)
            msg.res = Result.OK_NO_CMD_REQ
            return msg.res
    line = build_command(msg, state)
    block_time = msg.block_time if msg.is_blocking else _NONBLOCKING_SEND_MS
    driver.send(line, block_time)
    return Result.OK


def start_send_data(msg: Message, state: EspState) -> Result:
    """Send the payload of a CIPSEND request once the device prompts for it."""
    if msg is None:
        raise ValueError("no message to send data for")
    if msg.cmd is not Command.TCPIP_CIPSEND:
        return Result.SKIP
    _driver(state).send(msg.data, _DATA_SEND_MS)
    _require_conn(msg).run_event(EventType.CONN_SEND)
    return Result.OK