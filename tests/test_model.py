import pytest

from espat.model import (
    MAX_CONNS,
    Command,
    Connection,
    ConnType,
    Device,
    EspError,
    EspState,
    EventType,
    FirmwareVersion,
    IpAddress,
    Ipd,
    MacAddress,
    Message,
    Result,
)
from espat.pktbuf import PacketBuffer


def test_ip_address_str_is_dotted():
    assert str(IpAddress((192, 168, 2, 145))) == "192.168.2.145"


def test_ip_address_default_is_unset():
    assert IpAddress().is_unset
    assert not IpAddress((10, 0, 0, 1)).is_unset


@pytest.mark.parametrize("octets", [(1, 2, 3), (1, 2, 3, 4, 5), (256, 0, 0, 0), (-1, 0, 0, 0)])
def test_ip_address_rejects_bad_octets(octets):
    with pytest.raises(ValueError):
        IpAddress(octets)


def test_mac_address_str_pins_format():
    assert str(MacAddress((0x02, 0, 0, 0, 0, 0x01))) == "02:00:00:00:00:01"


def test_mac_address_str_round_trips():
    octets = (0x1A, 0x2B, 0x3C, 0x4D, 0x5E, 0x6F)
    text = str(MacAddress(octets))
    assert tuple(int(part, 16) for part in text.split(":")) == octets


@pytest.mark.parametrize("octets", [(1, 2, 3, 4, 5), (0, 0, 0, 0, 0, 300)])
def test_mac_address_rejects_bad_octets(octets):
    with pytest.raises(ValueError):
        MacAddress(octets)


@pytest.mark.parametrize(
    "result, is_ok, is_error",
    [
        (Result.OK, True, False),
        (Result.OK_IGNORE_MORE, True, False),
        (Result.ERR_CONN_FAIL, False, True),
        (Result.TIMEOUT, False, True),
        (Result.SKIP, False, False),
    ],
)
def test_result_categories(result, is_ok, is_error):
    carried = EspError(result).result
    assert carried is result
    assert carried.is_ok is is_ok
    assert carried.is_error is is_error


def test_esp_error_carries_result():
    err = EspError(Result.ERR_PASS)
    assert isinstance(err, Exception)
    assert err.result is Result.ERR_PASS
    assert "ERR_PASS" in str(err)


def test_connection_clear_resets_everything():
    conn = Connection(
        type=ConnType.UDP,
        remote_ip=IpAddress((192, 168, 2, 145)),
        remote_port=58072,
        local_port=80,
        active=True,
        client=True,
        data_received=True,
        cb=lambda evt, c: Result.OK,
        pbuf=PacketBuffer(4),
    )
    conn.ipd.read = True
    conn.ipd.tot_len = 7
    conn.clear()
    assert conn.type is ConnType.TCP
    assert conn.remote_ip.is_unset
    assert (conn.remote_port, conn.local_port) == (0, 0)
    assert not (conn.active or conn.client or conn.data_received)
    assert conn.cb is None and conn.pbuf is None
    assert conn.ipd.read is False and conn.ipd.tot_len == 0


def test_connection_run_event_calls_callback():
    seen = []

    def callback(event, conn):
        seen.append((event, conn))
        return Result.OK

    conn = Connection(cb=callback)
    assert conn.run_event(EventType.CONN_RECV) is Result.OK
    assert seen == [(EventType.CONN_RECV, conn)]


def test_connection_run_event_without_callback():
    assert Connection().run_event(EventType.CONN_SEND) is None


def test_ipd_clear():
    conn = Connection()
    ipd = Ipd(read=True, tot_len=10, rem_len=3, conn=conn, pbuf_head=PacketBuffer(2))
    ipd.clear()
    assert (ipd.read, ipd.tot_len, ipd.rem_len) == (False, 0, 0)
    assert ipd.conn is None and ipd.pbuf_head is None


def test_device_has_max_conns_distinct_connections():
    dev = Device()
    assert len(dev.conns) == MAX_CONNS
    assert len({id(c) for c in dev.conns}) == MAX_CONNS


def test_connection_id_finds_index():
    state = EspState()
    for idx, conn in enumerate(state.dev.conns):
        assert state.connection_id(conn) == idx


def test_connection_id_rejects_foreign_connection():
    state = EspState()
    with pytest.raises(ValueError):
        state.connection_id(Connection())


def test_reset_device_forgets_state():
    state = EspState()
    state.dev.version_at = FirmwareVersion(1, 7, 4)
    state.dev.active_conns = 0b101
    state.dev.conns[2].active = True
    state.reset_device()
    assert state.dev.version_at == FirmwareVersion()
    assert state.dev.active_conns == 0
    assert not any(c.active for c in state.dev.conns)


def test_message_defaults():
    msg = Message(Command.GMR)
    assert msg.cmd is Command.GMR
    assert msg.res is Result.OK
    assert msg.aps == [] and msg.conn is None
    other = Message(Command.WIFI_CWLAP)
    other.aps.append(object())
    assert msg.aps == []