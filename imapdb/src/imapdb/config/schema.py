"""Pydantic model describing how imapdb reaches its backing mailbox."""
from __future__ import annotations

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MAILBOX = "imapdb"
DEFAULT_PORT = 993

MatchMode = Literal["exact", "text"]
LogLevel = Literal["DEBUG", "INFO", "WARN", "ERROR"]


def split_address(address: str) -> Tuple[str, int]:
    """Split ``host[:port]`` into its parts, defaulting to the IMAPS port.

    IPv6 literals must be bracketed when a port is given (``[::1]:993``); a bare
    address containing several colons is taken as a host without a port.
    """

    address = address.strip()
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not host:
            raise ValueError(f"malformed IPv6 address {address!r}")
        if not rest:
            return host, DEFAULT_PORT
        if not rest.startswith(":"):
            raise ValueError(f"malformed address {address!r}")
        return host, _parse_port(rest[1:], address)
    if address.count(":") > 1:
        return address, DEFAULT_PORT
    host, sep, port = address.partition(":")
    if not host:
        raise ValueError(f"missing host in address {address!r}")
    if not sep:
        return host, DEFAULT_PORT
    return host, _parse_port(port, address)


def _parse_port(raw: str, address: str) -> int:
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in address {address!r}")
    return port


class Settings(BaseModel):
    """Connection parameters and store behaviour for one imapdb session.

    Attributes:
      address: ``host[:port]`` of the IMAPS server.
      username: Login credential.
      password: Password or app-specific token.
      mailbox: Mailbox holding one message per key.
      match: ``exact`` filters server search hits on the stored label;
        ``text`` trusts the server's substring search as-is.
      timeout: Optional socket timeout in seconds handed to ``imapclient``.
      log_level: Minimum severity written by the JSON logger.
    """

    model_config = ConfigDict(extra="forbid")

    address: str
    username: str
    password: str
    mailbox: str = DEFAULT_MAILBOX
    match: MatchMode = "exact"
    timeout: Optional[float] = Field(default=None, gt=0)
    log_level: LogLevel = "INFO"

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("address must not be empty")
        split_address(value)
        return value

    @field_validator("username", "password", "mailbox")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().upper()
            if value == "WARNING":
                return "WARN"
        return value

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]
