import pytest

from espat.connection import ipd_copy_data, ipd_reset, ipd_setup, parse_net_conn_status
from espat.model import (
    TCP_MULTIPLE_CONNECTION,
    TCP_SINGLE_CONNECTION,
    Command,
    ConnType,
    EspError,
    EspState,
    Message,
    Result,
)


def _callback(event, conn):
    return None


def _server_callback(event, conn):
    return None


def test_unrelated_line_is_skipped():
    state = EspState()
    assert parse_net_conn_status(state, b"OK\r\n") is Result.SKIP
    assert state.dev.active_conns == 0


def test_connect_as_client_during_cipstart():
    state = EspState()
    state.msg = Message(cmd=Command.TCPIP_CIPSTART, callback=_callback)
    assert parse_net_conn_status(state, b"0,CONNECT\r\n") is Result.OK
    conn = state.dev.conns[0]
    assert conn.active
    assert conn.client
    assert conn.cb is _callback
    assert state.dev.active_conns & 1


def test_connect_as_server_uses_server_callback():
    state = EspState(evt_server=_server_callback)
    assert parse_net_conn_status(state, b"1,CONNECT\r\n") is Result.OK
    conn = state.dev.conns[1]
    assert conn.active
    assert not conn.client
    assert conn.cb is _server_callback
    assert state.dev.active_conns & (1 << 1)


def test_closed_clears_connection():
    state = EspState(evt_server=_server_callback)
    parse_net_conn_status(state, b"2,CONNECT\r\n")
    assert parse_net_conn_status(state, b"2,CLOSED\r\n") is Result.OK
    conn = state.dev.conns[2]
    assert not conn.active
    assert conn.cb is None
    assert state.dev.active_conns & (1 << 2) == 0


def test_link_id_out_of_range():
    state = EspState()
    assert parse_net_conn_status(state, b"7,CONNECT\r\n") is Result.ERR
    assert state.dev.active_conns == 0


def test_link_conn_extension_from_source_example():
    state = EspState(evt_server=_server_callback)
    line = b'+LINK_CONN:0,0,"TCP",1,"192.168.2.145",58072,80\r\n'
    assert parse_net_conn_status(state, line) is Result.OK
    conn = state.dev.conns[0]
    assert conn.type is ConnType.TCP
    assert not conn.client
    assert str(conn.remote_ip) == "192.168.2.145"
    assert conn.remote_port == 58072
    assert conn.local_port == 80
    assert conn.cb is _server_callback
    assert state.dev.active_conns & 1


def test_link_conn_udp_client():
    state = EspState()
    state.msg = Message(cmd=Command.TCPIP_CIPSTART, callback=_callback)
    line = b'+LINK_CONN:0,3,"UDP",0,"10.0.0.9",1234,4321\r\n'
    assert parse_net_conn_status(state, line) is Result.OK
    conn = state.dev.conns[3]
    assert conn.type is ConnType.UDP
    assert conn.client
    assert conn.cb is _callback


def test_link_conn_failure():
    state = EspState()
    line = b'+LINK_CONN:1,0,"TCP",1,"192.168.2.145",58072,80\r\n'
    assert parse_net_conn_status(state, line) is Result.ERR_CONN_FAIL
    assert not state.dev.conns[0].active


@pytest.mark.parametrize(
    "line",
    [
        b'+LINK_CONN:0,0,"XYZ",1,"1.2.3.4",1,2\r\n',
        b"+LINK_CONN:0,0,TCP,1\r\n",
        b'+LINK_CONN:0,0,"TCPIP",1\r\n',
    ],
)
def test_link_conn_malformed(line):
    state = EspState()
    assert parse_net_conn_status(state, line) is Result.ERR_MEM


def test_ipd_setup_multiple_connections():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd = ipd_setup(state, b"+IPD,2,10:")
    assert ipd is state.dev.conns[2].ipd
    assert ipd.conn is state.dev.conns[2]
    assert ipd.tot_len == 10
    assert ipd.rem_len == 10
    assert ipd.read
    assert state.dev.conns[2].data_received


def test_ipd_setup_busy_when_already_reading():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd_setup(state, b"+IPD,1,4:")
    with pytest.raises(EspError) as info:
        ipd_setup(state, b"+IPD,1,4:")
    assert info.value.result is Result.BUSY


def test_ipd_setup_bad_link():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    with pytest.raises(EspError) as info:
        ipd_setup(state, b"+IPD,9,4:")
    assert info.value.result is Result.ERR


def test_ipd_setup_records_sender():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd_setup(state, b"+IPD,0,4,10.0.0.2,5000:")
    conn = state.dev.conns[0]
    assert str(conn.remote_ip) == "10.0.0.2"
    assert conn.remote_port == 5000


def test_ipd_setup_single_connection():
    state = EspState(mux_conn=TCP_SINGLE_CONNECTION)
    ipd = ipd_setup(state, b"+IPD,7:")
    assert ipd.conn is state.dev.conns[0]
    assert ipd.tot_len == 7


def test_ipd_copy_all_at_once():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd = ipd_setup(state, b"+IPD,0,5:")
    result, consumed = ipd_copy_data(ipd, b"helloEXTRA")
    assert result is Result.OK
    assert consumed == 5
    assert ipd.rem_len == 0
    conn = state.dev.conns[0]
    assert bytes(conn.pbuf.payload) == b"hello"
    assert conn.pbuf.conn is conn


def test_ipd_copy_in_pieces():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd = ipd_setup(state, b"+IPD,0,8:")
    result, consumed = ipd_copy_data(ipd, b"abc")
    assert result is Result.IN_PROGRESS
    assert consumed == 3
    assert ipd.rem_len == 5
    assert state.dev.conns[0].pbuf is None
    result, consumed = ipd_copy_data(ipd, b"defgh")
    assert result is Result.OK
    assert consumed == 5
    head = state.dev.conns[0].pbuf
    assert head is ipd.pbuf_head
    assert head.chain_len == 2
    assert b"".join(bytes(b.payload) for b in head.chain()) == b"abcdefgh"


def test_ipd_reset():
    state = EspState(mux_conn=TCP_MULTIPLE_CONNECTION)
    ipd = ipd_setup(state, b"+IPD,0,2:")
    ipd_copy_data(ipd, b"xy")
    ipd_reset(ipd)
    conn = state.dev.conns[0]
    assert not ipd.read
    assert ipd.conn is None
    assert ipd.pbuf_head is None
    assert not conn.data_received
    assert bytes(conn.pbuf.payload) == b"xy"


def test_ipd_reset_without_connection():
    state = EspState()
    with pytest.raises(ValueError):
        ipd_reset(state.dev.conns[0].ipd)