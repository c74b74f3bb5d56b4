"""Track link status lines and collect incoming network data (+IPD)."""

from __future__ import annotations

from typing import Tuple

from espat.model import (
    MAX_CONNS,
    TCP_MULTIPLE_CONNECTION,
    Command,
    Connection,
    ConnType,
    EspError,
    EspState,
    Ipd,
    Result,
)
from espat.pktbuf import PacketBuffer
from espat.response import parse_ip
from espat.util import ASCII_DOUBLE_QUOTE, DigitBase, TokenNotFoundError, parse_first_number, parse_until_token

_CONN_EXT_PREFIX = b"+LINK_CONN:"
_PROTOCOLS = {b"TCP": ConnType.TCP, b"UDP": ConnType.UDP, b"SSL": ConnType.SSL}


def _num(data: bytes, pos: int) -> Tuple[int, int]:
    return parse_first_number(data, pos, DigitBase.DECIMAL)


def _parse_conn_extension(conn: Connection, line: bytes, pos: int) -> Result:
    quote = line.find(bytes([ASCII_DOUBLE_QUOTE]), pos)
    if quote < 0:
        return Result.ERR_MEM
    pos = quote + 1
    try:
        label = parse_until_token(line[pos:], ASCII_DOUBLE_QUOTE, 4)
    except TokenNotFoundError:
        return Result.ERR_MEM
    conn_type = _PROTOCOLS.get(label)
    if conn_type is None:
        return Result.ERR_MEM
    conn.type = conn_type
    for_server, pos = _num(line, pos)
    conn.client = not (for_server & 0xFF)
    conn.remote_ip, pos = parse_ip(line, pos)
    remote_port, pos = _num(line, pos)
    local_port, pos = _num(line, pos)
    conn.remote_port = remote_port & 0xFFFF
    conn.local_port = local_port & 0xFFFF
    return Result.OK


def parse_net_conn_status(state: EspState, line: bytes) -> Result:
    """Handle "<id>,CONNECT", "<id>,CLOSED" and "+LINK_CONN:" lines.

    Returns SKIP for any other line, OK when the link table was updated,
    or an error Result when the line names a bad link or is malformed.
    """
    line = bytes(line)
    is_connect = line[1:9] == b",CONNECT"
    is_close = line[1:8] == b",CLOSED"
    is_connect_ext = line.startswith(_CONN_EXT_PREFIX)
    if not (is_connect or is_close or is_connect_ext):
        return Result.SKIP

    pos = 0
    if is_connect_ext:
        pos = len(_CONN_EXT_PREFIX)
        establish_fail, pos = _num(line, pos)
        if establish_fail & 0xFF:
            return Result.ERR_CONN_FAIL
        link_id, pos = _num(line, pos)
        link_id &= 0xFF
    else:
        link_id = line[0] - 0x30
    if not 0 <= link_id < MAX_CONNS:
        return Result.ERR

    conn = state.dev.conns[link_id]
    if is_connect or is_connect_ext:
        conn.active = True
        msg = state.msg
        if is_connect_ext:
            result = _parse_conn_extension(conn, line, pos)
            if result is not Result.OK:
                return result
        elif msg is not None and msg.cmd is Command.TCPIP_CIPSTART:
            conn.client = True
        state.dev.active_conns |= 1 << link_id
        if conn.client:
            if msg is not None:
                conn.cb = msg.callback
        else:
            conn.cb = state.evt_server
    else:
        conn.clear()
        state.dev.active_conns &= ~(1 << link_id)
    return Result.OK


def ipd_setup(state: EspState, metadata: bytes) -> Ipd:
    """Prepare collection of the data announced by a "+IPD,..." header.

    Raises EspError with ERR for a bad link id and BUSY when the link is
    still collecting earlier data.
    """
    metadata = bytes(metadata)
    pos = 0
    link_id = 0
    if state.mux_conn == TCP_MULTIPLE_CONNECTION:
        link_id, pos = _num(metadata, pos)
        link_id &= 0xFF
        if link_id >= MAX_CONNS:
            raise EspError(Result.ERR, f"link id out of range: {link_id}")
    conn = state.dev.conns[link_id]
    ipd = conn.ipd
    if ipd.read:
        raise EspError(Result.BUSY, f"link {link_id} is still receiving data")
    conn.data_received = True
    length, pos = _num(metadata, pos)
    length &= 0xFFFFFFFF
    # Sender address and port are present only when CIPDINFO is enabled.
    if conn.remote_ip.is_unset:
        conn.remote_ip, pos = parse_ip(metadata, pos)
    if conn.remote_port == 0:
        port, pos = _num(metadata, pos)
        conn.remote_port = port & 0xFFFF
    ipd.tot_len = length
    ipd.rem_len = length
    ipd.conn = conn
    ipd.pbuf_head = None
    ipd.read = True
    return ipd


def ipd_copy_data(ipd: Ipd, data) -> Tuple[Result, int]:
    """Store the next piece of incoming data in a new chained packet buffer.

    Returns OK once all announced data has arrived (the chain is then
    handed to the connection), IN_PROGRESS otherwise, together with the
    number of bytes of ``data`` that were consumed.
    """
    data = bytes(data)
    remain = ipd.rem_len
    copy_len = min(len(data), remain)
    pbuf = PacketBuffer(copy_len)
    pbuf.conn = ipd.conn
    if ipd.pbuf_head is None:
        ipd.pbuf_head = pbuf
        pbuf.chain_len = 1
    else:
        ipd.pbuf_head.append(pbuf)
    pbuf.copy_from(data[:copy_len])

    if len(data) >= remain:
        consumed = remain
        ipd.rem_len = 0
        if ipd.conn is not None:
            ipd.conn.pbuf = ipd.pbuf_head
        return Result.OK, consumed
    ipd.rem_len = remain - len(data)
    return Result.IN_PROGRESS, len(data)


def ipd_reset(ipd: Ipd) -> None:
    """Finish data collection on the link and clear the +IPD state."""
    if ipd.conn is None:
        raise ValueError("no connection is collecting data")
    ipd.conn.data_received = False
    ipd.clear()