"""Parse response lines the device sends back for AT commands."""

from __future__ import annotations

from typing import Tuple

from espat.model import (
    MAX_CONNS,
    MAX_SSID_LEN,
    AccessPoint,
    Command,
    EspState,
    FirmwareVersion,
    IpAddress,
    JoinedAccessPoint,
    MacAddress,
    Message,
    NetAttr,
    Result,
)
from espat.util import ASCII_DOT, ASCII_DOUBLE_QUOTE, DigitBase, TokenNotFoundError, parse_first_number, parse_until_token

_ERROR_RESULTS = frozenset(
    {
        Result.BUSY,
        Result.ERR_MEM,
        Result.ERR_NO_IP,
        Result.ERR_NO_AVAIL_CONN,
        Result.ERR_CONN_TIMEOUT,
        Result.ERR_PASS,
        Result.ERR_NO_AP,
        Result.ERR_CONN_FAIL,
        Result.ERR_WIFI_NOT_CONNECTED,
        Result.ERR_NO_DEVICE,
    }
)

_JOIN_ERRORS = {
    1: Result.ERR_CONN_TIMEOUT,
    2: Result.ERR_PASS,
    3: Result.ERR_NO_AP,
    4: Result.ERR_CONN_FAIL,
}

_IGNORED = frozenset(
    {
        Command.TCPIP_CIPSTO,
        Command.TCPIP_CIPSTART,
        Command.TCPIP_CIPCLOSE,
        Command.TCPIP_CIPDINFO,
        Command.SYSMSG,
        Command.WIFI_CWLIF,
    }
)


def _num(data: bytes, pos: int, base=DigitBase.DECIMAL) -> Tuple[int, int]:
    return parse_first_number(data, pos, base)


def _signed(value: int, bits: int) -> int:
    half = 1 << (bits - 1)
    return ((value + half) & ((1 << bits) - 1)) - half


def parse_ip(data: bytes, pos: int) -> Tuple[IpAddress, int]:
    """Parse four decimal numbers as an IP address; return it and the new position."""
    octets = []
    for _ in range(4):
        value, pos = _num(data, pos)
        octets.append(value & 0xFF)
    return IpAddress(tuple(octets)), pos


def parse_mac(data: bytes, pos: int) -> Tuple[MacAddress, int]:
    """Parse six hex numbers as a MAC address; return it and the new position."""
    octets = []
    for _ in range(6):
        value, pos = _num(data, pos, DigitBase.HEX)
        octets.append(value & 0xFF)
    return MacAddress(tuple(octets)), pos


def parse_version(data: bytes, pos: int) -> Tuple[FirmwareVersion, int]:
    """Parse major, minor and patch numbers."""
    major, pos = _num(data, pos)
    minor, pos = _num(data, pos)
    patch, pos = _num(data, pos)
    return FirmwareVersion(major, minor, patch), pos


def _parse_ssid(data: bytes, pos: int) -> Tuple[str, int]:
    """Parse a quoted or unquoted SSID; return it and the position after it."""
    if pos < len(data) and data[pos] == ASCII_DOUBLE_QUOTE:
        raw = parse_until_token(data[pos + 1 :], ASCII_DOUBLE_QUOTE, MAX_SSID_LEN)
        return raw.decode("latin-1"), pos + 2 + len(raw)
    raw = parse_until_token(data[pos:], ASCII_DOT, MAX_SSID_LEN)
    return raw.decode("latin-1"), pos + len(raw)


def _parse_quoted_mac(data: bytes, pos: int) -> Tuple[MacAddress, int]:
    if pos < len(data) and data[pos] == ASCII_DOUBLE_QUOTE:
        mac, pos = parse_mac(data, pos + 1)
        return mac, pos + 1
    return parse_mac(data, pos)


def parse_found_ap(data: bytes, msg: Message) -> Result:
    """Parse one +CWLAP line and append the access point to ``msg.aps``."""
    start = data.find(b"+CWLAP:")
    if start < 0:
        return Result.ERR_MEM
    pos = start + 7
    ap = AccessPoint()
    ap.ecn, pos = _num(data, pos)
    pos += 1
    try:
        ap.ssid, pos = _parse_ssid(data, pos)
    except TokenNotFoundError:
        return Result.ERR_MEM
    if msg.ssid is not None and not ap.ssid.startswith(msg.ssid):
        return Result.OK
    rssi, pos = _num(data, pos)
    ap.rssi = _signed(rssi, 16)
    ap.mac, pos = _parse_quoted_mac(data, pos)
    ch, pos = _num(data, pos)
    ap.ch = ch & 0xFF
    offset, pos = _num(data, pos)
    ap.offset = _signed(offset, 8)
    cal, pos = _num(data, pos)
    ap.cal = cal & 0xFF
    for _ in range(3):
        comma = data.find(b",", pos)
        if comma < 0:
            return Result.ERR_MEM
        pos = comma + 1
    bgn, pos = _num(data, pos)
    ap.bgn = bgn & 0xFF
    wps, pos = _num(data, pos)
    ap.wps = wps & 0xFF
    msg.aps.append(ap)
    if len(msg.aps) == msg.max_aps:
        return Result.OK_IGNORE_MORE
    return Result.OK


def parse_joined_ap(data: bytes, msg: Message) -> JoinedAccessPoint:
    """Parse a +CWJAP_CUR line into ``msg.joined_ap`` and return it."""
    start = data.find(b"+CWJAP_CUR:")
    if start < 0:
        raise ValueError("line holds no joined access point")
    info = JoinedAccessPoint()
    info.ssid, pos = _parse_ssid(data, start + 11)
    pos += 1
    info.mac, pos = _parse_quoted_mac(data, pos)
    ch, pos = _num(data, pos)
    info.ch = ch & 0xFF
    rssi, pos = _num(data, pos)
    info.rssi = _signed(rssi, 16)
    msg.joined_ap = info
    return info


def _set_join_status(netattr: NetAttr, connected: bool) -> None:
    netattr.is_connected = connected
    netattr.has_ip = False


def _sta_join_result(netattr: NetAttr, line: bytes, msg: Message) -> Result:
    if line.startswith(b"+CWJAP_"):
        error_num, _ = _num(line, 11)
        msg.error_num = error_num & 0xFF
        return _JOIN_ERRORS.get(msg.error_num, Result.ERR)
    if line.startswith(b"WIFI CONNECTED"):
        _set_join_status(netattr, True)
        return Result.OK
    return Result.ERR


def _parse_cipstatus(line: bytes, state: EspState) -> None:
    dev = state.dev
    if line.startswith(b"+CIPSTATUS"):
        conn_id, pos = _num(line, 10)
        if not 0 <= conn_id < MAX_CONNS:
            return
        dev.active_conns |= 1 << conn_id
        conn = dev.conns[conn_id]
        conn.remote_ip, pos = parse_ip(line, pos + 3)
        conn.remote_port, pos = _num(line, pos)
        conn.local_port, pos = _num(line, pos)
        client, pos = _num(line, pos)
        conn.client = bool(client)
    elif line.startswith(b"STATUS:"):
        dev.active_conns_last = dev.active_conns
        dev.active_conns = 0


def _parse_addresses(line: bytes, pos: int, msg: Message) -> None:
    rest = line[pos:]
    if rest.startswith(b"ip:"):
        msg.ip, _ = parse_ip(line, pos + 3)
    elif rest.startswith(b"gateway:"):
        msg.gateway, _ = parse_ip(line, pos + 8)
    elif rest.startswith(b"netmask:"):
        msg.netmask, _ = parse_ip(line, pos + 8)


def _parse_cifsr(line: bytes, pos: int, msg: Message) -> None:
    rest = line[pos:]
    if rest.startswith(b"STAIP"):
        msg.sta_ip, _ = parse_ip(line, pos + 5)
    elif rest.startswith(b"STAMAC"):
        msg.sta_mac, _ = parse_mac(line, pos + 6)
    elif rest.startswith(b"APIP"):
        msg.ap_ip, _ = parse_ip(line, pos + 4)
    elif rest.startswith(b"APMAC"):
        msg.ap_mac, _ = parse_mac(line, pos + 5)


def parse_response_line(state: EspState, line: bytes) -> bool:
    """Handle one complete response line; return True when the response has ended."""
    msg = state.msg
    line = bytes(line)
    if msg is None or line in (b"", b"\r\n"):
        return False

    is_ok = line == b"OK\r\n"
    is_err = not is_ok and line == b"ERROR\r\n"
    is_rdy = line == b"ready\r\n"
    if is_ok:
        if msg.res is not Result.OK_IGNORE_MORE:
            msg.res = Result.OK
    elif is_err and msg.res not in _ERROR_RESULTS:
        msg.res = Result.ERR
    end = is_ok or is_err or is_rdy

    if msg.res is Result.OK_IGNORE_MORE:
        return end

    cmd = msg.cmd
    if cmd is Command.GMR:
        if line.startswith(b"AT version"):
            state.dev.version_at, _ = parse_version(line, 10)
            state.dev_present = True
        elif line.startswith(b"SDK version"):
            state.dev.version_sdk, _ = parse_version(line, 11)
    elif cmd is Command.WIFI_CWLAP:
        if not end and b"+CWLAP:" in line:
            msg.res = parse_found_ap(line, msg)
    elif cmd is Command.WIFI_CWJAP_GET:
        if not is_ok and b"+CWJAP_CUR:" in line:
            parse_joined_ap(line, msg)
    elif cmd is Command.WIFI_CWJAP:
        msg.res = _sta_join_result(state.dev.sta, line, msg)
        end = True
    elif cmd is Command.WIFI_CWQAP:
        if line.startswith(b"WIFI DISCONNECT"):
            _set_join_status(state.dev.sta, False)
            msg.res = Result.OK
            end = True
        else:
            msg.res = Result.ERR
    elif cmd is Command.WIFI_CIPSTA_GET:
        _parse_addresses(line, 12, msg)
    elif cmd is Command.WIFI_CIPAP_GET:
        _parse_addresses(line, 11, msg)
    elif cmd is Command.TCPIP_CIPMUX:
        state.mux_conn = msg.mux
    elif cmd is Command.TCPIP_CIPSTATUS:
        _parse_cipstatus(line, state)
    elif cmd is Command.TCPIP_CIPSERVER:
        if is_ok:
            state.evt_server = msg.callback
    elif cmd in _IGNORED:
        pass
    elif cmd is Command.TCPIP_PING:
        if line.startswith(b"+"):
            msg.ping_time, _ = _num(line, 0)
    elif cmd is Command.TCPIP_CIFSR:
        _parse_cifsr(line, 7, msg)
    elif cmd is Command.TCPIP_CIPSEND:
        if not end:
            if line.startswith(b"SEND OK\r\n"):
                msg.res, end = Result.OK, True
            elif line.startswith(b"SEND FAIL\r\n"):
                msg.res, end = Result.ERR, True
            else:
                msg.res = Result.IN_PROGRESS
    else:
        msg.res = Result.SKIP
        end = True
    return end