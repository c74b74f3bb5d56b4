"""Reassemble bytes from the device into response lines and network data."""

from __future__ import annotations

from typing import Optional

from espat.commands import start_send_data
from espat.connection import ipd_copy_data, ipd_reset, ipd_setup, parse_net_conn_status
from espat.model import EspError, EspState, EventType, Ipd, Result
from espat.response import parse_response_line
from espat.util import ASCII_CR, ASCII_LF, is_valid_ascii

LINE_BUF_SIZE = 0x180

_COLON = ord(":")
_PROMPT = ord(">")
_SPACE = ord(" ")


class ResponseReceiver:
    """Feed raw bytes from the device; lines are parsed as they complete.

    Incoming data announced by "+IPD" is collected into packet buffers
    and handed to the connection's callback once complete.
    """

    def __init__(self, state: EspState) -> None:
        self.state = state
        self._line = bytearray()
        self._prev = 0
        self._ipd: Optional[Ipd] = None

    def reset(self) -> None:
        """Drop any partial line and any data collection in progress."""
        self._line.clear()
        self._prev = 0
        self._ipd = None

    def _append(self, ch: int) -> None:
        if len(self._line) < LINE_BUF_SIZE:
            self._line.append(ch)

    def _prompt_accepted(self) -> bool:
        msg = self.state.msg
        return msg is not None and start_send_data(msg, self.state) is Result.OK

    def feed(self, data) -> bool:
        """Process a chunk of received bytes; return True if a response ended."""
        data = bytes(data)
        state = self.state
        end = False
        curr = 0
        idx = 0
        while idx < len(data):
            if self._ipd is None:
                curr = data[idx]
                idx += 1
                if not is_valid_ascii(curr):
                    break
                self._append(curr)
                if self._prev == ASCII_CR and curr == ASCII_LF:
                    line = bytes(self._line)
                    end = parse_response_line(state, line) or end
                    parse_net_conn_status(state, line)
                    self._line.clear()
                elif (
                    curr == _COLON
                    and self._line.startswith(b"+IPD")
                    and len(self._line) > 5
                ):
                    try:
                        self._ipd = ipd_setup(state, bytes(self._line))
                    except EspError:
                        self._ipd = None
                    self._line.clear()
                elif self._prev == _PROMPT and curr == _SPACE and self._prompt_accepted():
                    self._line.clear()
                    break
            else:
                ipd = self._ipd
                result, consumed = ipd_copy_data(ipd, data[idx:])
                idx += consumed
                if result is Result.OK:
                    conn = ipd.conn
                    if conn is not None:
                        conn.run_event(EventType.CONN_RECV)
                    ipd_reset(ipd)
                    self._ipd = None
                    if consumed:
                        curr = data[idx - 1]
                self._line.clear()
            self._prev = curr
        return end