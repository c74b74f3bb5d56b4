"""Data model shared by the command builder, the response parser and the receiver."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from espat.pktbuf import PacketBuffer
from espat.system import LowLevelDriver

# Number of links the device can keep open at the same time.
MAX_CONNS = 5
# Longest SSID an access point may announce.
MAX_SSID_LEN = 32

TCP_SINGLE_CONNECTION = 0
TCP_MULTIPLE_CONNECTION = 1


class Result(enum.Enum):
    """Outcome of a command or of a parsing step."""

    OK = enum.auto()
    OK_IGNORE_MORE = enum.auto()
    OK_NO_CMD_REQ = enum.auto()
    IN_PROGRESS = enum.auto()
    SKIP = enum.auto()
    ERR = enum.auto()
    BUSY = enum.auto()
    TIMEOUT = enum.auto()
    ERR_MEM = enum.auto()
    ERR_NO_IP = enum.auto()
    ERR_NO_AVAIL_CONN = enum.auto()
    ERR_CONN_TIMEOUT = enum.auto()
    ERR_PASS = enum.auto()
    ERR_NO_AP = enum.auto()
    ERR_CONN_FAIL = enum.auto()
    ERR_WIFI_NOT_CONNECTED = enum.auto()
    ERR_NO_DEVICE = enum.auto()

    @property
    def is_ok(self) -> bool:
        """True for the successful outcomes."""
        return self in (Result.OK, Result.OK_IGNORE_MORE, Result.OK_NO_CMD_REQ)

    @property
    def is_error(self) -> bool:
        """True for outcomes that report a failure."""
        return self.name.startswith("ERR") or self in (Result.BUSY, Result.TIMEOUT)


class EspError(Exception):
    """A failure reported by the device or by the library, carrying its Result."""

    def __init__(self, result: Result, message: Optional[str] = None) -> None:
        self.result = result
        super().__init__(message or f"device operation failed: {result.name}")


class Command(enum.Enum):
    """AT commands known to the library."""

    IDLE = enum.auto()
    RESET = enum.auto()
    ATE0 = enum.auto()
    ATE1 = enum.auto()
    GMR = enum.auto()
    GSLP = enum.auto()
    RESTORE = enum.auto()
    UART = enum.auto()
    WAKEUPGPIO = enum.auto()
    RFPOWER = enum.auto()
    SYSRAM = enum.auto()
    SYSADC = enum.auto()
    SYSIOSETCFG = enum.auto()
    SYSIOGETCFG = enum.auto()
    SYSGPIODIR = enum.auto()
    SYSGPIOWRITE = enum.auto()
    SYSGPIOREAD = enum.auto()
    SYSMSG = enum.auto()
    WIFI_CWLAPOPT = enum.auto()
    WIFI_CWMODE = enum.auto()
    WIFI_CWJAP = enum.auto()
    WIFI_CWJAP_GET = enum.auto()
    WIFI_CWQAP = enum.auto()
    WIFI_CWLAP = enum.auto()
    WIFI_CIPSTAMAC_GET = enum.auto()
    WIFI_CIPSTAMAC_SET = enum.auto()
    WIFI_CIPSTA_GET = enum.auto()
    WIFI_CIPSTA_SET = enum.auto()
    WIFI_CWAUTOCONN = enum.auto()
    WIFI_CIPAP_GET = enum.auto()
    WIFI_CIPAP_SET = enum.auto()
    WIFI_CWSAP_GET = enum.auto()
    WIFI_CWSAP_SET = enum.auto()
    WIFI_CIPAPMAC_GET = enum.auto()
    WIFI_CIPAPMAC_SET = enum.auto()
    WIFI_CWLIF = enum.auto()
    WIFI_WPS = enum.auto()
    WIFI_MDNS = enum.auto()
    WIFI_CWHOSTNAME_SET = enum.auto()
    WIFI_CWHOSTNAME_GET = enum.auto()
    TCPIP_CIPDOMAIN = enum.auto()
    TCPIP_CIPDNS_SET = enum.auto()
    TCPIP_CIPDNS_GET = enum.auto()
    TCPIP_CIPSTATUS = enum.auto()
    TCPIP_CIPSTART = enum.auto()
    TCPIP_CIPCLOSE = enum.auto()
    TCPIP_CIPSEND = enum.auto()
    TCPIP_CIFSR = enum.auto()
    TCPIP_CIPMUX = enum.auto()
    TCPIP_CIPSERVER = enum.auto()
    TCPIP_CIPSTO = enum.auto()
    TCPIP_CIPMODE = enum.auto()
    TCPIP_CIPRECVMODE = enum.auto()
    TCPIP_CIPRECVDATA = enum.auto()
    TCPIP_PING = enum.auto()
    TCPIP_CIUPDATE = enum.auto()
    TCPIP_CIPSNTPCFG = enum.auto()
    TCPIP_CIPSNTPTIME = enum.auto()
    TCPIP_CIPDINFO = enum.auto()


class ConnType(enum.Enum):
    """Transport of a network connection."""

    TCP = "TCP"
    UDP = "UDP"
    SSL = "SSL"


class EventType(enum.Enum):
    """Events passed to application callbacks."""

    INIT_FINISH = enum.auto()
    WIFI_CONNECTED = enum.auto()
    WIFI_DISCONNECTED = enum.auto()
    CONN_RECV = enum.auto()
    CONN_SEND = enum.auto()


def _check_octets(octets, count: int, kind: str) -> Tuple[int, ...]:
    values = tuple(int(v) for v in octets)
    if len(values) != count:
        raise ValueError(f"{kind} needs {count} octets, got {len(values)}")
    for value in values:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"{kind} octet out of range: {value}")
    return values


@dataclass(frozen=True)
class IpAddress:
    """An IPv4 address as four octets."""

    octets: Tuple[int, int, int, int] = (0, 0, 0, 0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "octets", _check_octets(self.octets, 4, "IP address"))

    @property
    def is_unset(self) -> bool:
        """True when every octet is zero."""
        return not any(self.octets)

    def __str__(self) -> str:
        return ".".join(str(v) for v in self.octets)


@dataclass(frozen=True)
class MacAddress:
    """A hardware address as six octets."""

    octets: Tuple[int, int, int, int, int, int] = (0, 0, 0, 0, 0, 0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "octets", _check_octets(self.octets, 6, "MAC address"))

    def __str__(self) -> str:
        return ":".join(f"{v:02x}" for v in self.octets)


@dataclass
class FirmwareVersion:
    """Version reported by the device firmware."""

    major: int = 0
    minor: int = 0
    patch: int = 0


@dataclass
class AccessPoint:
    """An access point found by a scan."""

    ecn: int = 0
    ssid: str = ""
    rssi: int = 0
    mac: MacAddress = field(default_factory=MacAddress)
    ch: int = 0
    offset: int = 0
    cal: int = 0
    bgn: int = 0
    wps: int = 0


@dataclass
class JoinedAccessPoint:
    """The access point the station is joined to."""

    ssid: str = ""
    mac: MacAddress = field(default_factory=MacAddress)
    ch: int = 0
    rssi: int = 0


@dataclass
class NetAttr:
    """Network state of the station or soft-AP interface."""

    is_connected: bool = False
    has_ip: bool = False
    ip: IpAddress = field(default_factory=IpAddress)
    gw: IpAddress = field(default_factory=IpAddress)
    nm: IpAddress = field(default_factory=IpAddress)
    mac: MacAddress = field(default_factory=MacAddress)


EventCallback = Callable[[EventType, "Connection"], Optional[Result]]


@dataclass(eq=False)
class Ipd:
    """State of incoming network data (+IPD) being collected for a connection."""

    read: bool = False
    tot_len: int = 0
    rem_len: int = 0
    conn: Optional["Connection"] = field(default=None, repr=False)
    pbuf_head: Optional[PacketBuffer] = field(default=None, repr=False)

    def clear(self) -> None:
        """Forget all collected state."""
        self.read = False
        self.tot_len = 0
        self.rem_len = 0
        self.conn = None
        self.pbuf_head = None


@dataclass(eq=False)
class Connection:
    """One link on the device."""

    type: ConnType = ConnType.TCP
    remote_ip: IpAddress = field(default_factory=IpAddress)
    remote_port: int = 0
    local_port: int = 0
    active: bool = False
    client: bool = False
    data_received: bool = False
    cb: Optional[EventCallback] = field(default=None, repr=False)
    pbuf: Optional[PacketBuffer] = field(default=None, repr=False)
    ipd: Ipd = field(default_factory=Ipd, repr=False)

    def clear(self) -> None:
        """Reset the connection in place, dropping its flags and callback."""
        self.type = ConnType.TCP
        self.remote_ip = IpAddress()
        self.remote_port = 0
        self.local_port = 0
        self.active = False
        self.client = False
        self.data_received = False
        self.cb = None
        self.pbuf = None
        self.ipd.clear()

    def run_event(self, event: EventType) -> Optional[Result]:
        """Pass ``event`` to the connection's callback, if it has one."""
        if self.cb is None:
            return None
        return self.cb(event, self)


def _new_conns() -> List[Connection]:
    return [Connection() for _ in range(MAX_CONNS)]


@dataclass
class Device:
    """Everything known about the attached device."""

    version_at: FirmwareVersion = field(default_factory=FirmwareVersion)
    version_sdk: FirmwareVersion = field(default_factory=FirmwareVersion)
    sta: NetAttr = field(default_factory=NetAttr)
    ap: NetAttr = field(default_factory=NetAttr)
    conns: List[Connection] = field(default_factory=_new_conns)
    active_conns: int = 0
    active_conns_last: int = 0


@dataclass(eq=False)
class Message:
    """An AT command request together with its arguments and its outcome."""

    cmd: Command
    res: Result = Result.OK
    is_blocking: bool = True
    block_time: int = 100
    # reset / deep sleep
    delay_ms: int = 0
    sleep_ms: int = 0
    # system messages
    ext_info_netconn: bool = False
    ext_info_ipd: bool = False
    # whether a set value is also stored as the default in flash
    save: bool = False
    wifi_mode: int = 0
    # joining / scanning access points
    ssid: Optional[str] = None
    password: str = ""
    mac: Optional[MacAddress] = None
    error_num: int = 0
    aps: List[AccessPoint] = field(default_factory=list)
    max_aps: int = 0
    joined_ap: JoinedAccessPoint = field(default_factory=JoinedAccessPoint)
    # station / soft-AP addresses
    ip: IpAddress = field(default_factory=IpAddress)
    gateway: IpAddress = field(default_factory=IpAddress)
    netmask: IpAddress = field(default_factory=IpAddress)
    sta_ip: IpAddress = field(default_factory=IpAddress)
    sta_mac: MacAddress = field(default_factory=MacAddress)
    ap_ip: IpAddress = field(default_factory=IpAddress)
    ap_mac: MacAddress = field(default_factory=MacAddress)
    # network connections
    conn: Optional[Connection] = None
    conn_type: ConnType = ConnType.TCP
    host: str = ""
    port: int = 0
    callback: Optional[EventCallback] = field(default=None, repr=False)
    data: bytes = b""
    mux: int = TCP_MULTIPLE_CONNECTION
    trans_mode: int = 0
    server_enable: bool = False
    timeout: int = 0
    ping_time: Optional[int] = None


@dataclass(eq=False)
class EspState:
    """Global state of the library: the device, the current request and the link."""

    dev: Device = field(default_factory=Device)
    msg: Optional[Message] = None
    driver: Optional[LowLevelDriver] = None
    mux_conn: int = TCP_SINGLE_CONNECTION
    dev_present: bool = False
    evt_server: Optional[EventCallback] = field(default=None, repr=False)

    def connection_id(self, conn: Connection) -> int:
        """Return the link id of ``conn``."""
        for idx, candidate in enumerate(self.dev.conns):
            if candidate is conn:
                return idx
        raise ValueError("connection does not belong to this device")

    def reset_device(self) -> None:
        """Forget everything known about the device."""
        self.dev = Device()