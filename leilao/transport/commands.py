"""Parsing of the semicolon-separated auction command grammar.

The grammar is shared by every transport::

    cadastrarItem;NAME;DESC;PRICE
    registrarLance;ITEM_ID;BIDDER;VALUE

HTTP carries the same fields without the leading verb, the verb being implied
by the route. Fields are not escaped, so a ``;`` inside a name or description
changes the field count and the command is rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from ..registry.registry import Protocol

REGISTER_ITEM = "cadastrarItem"
PLACE_BID = "registrarLance"
PING = "ping"
SEPARATOR = ";"


class ParseError(ValueError):
    """Raised when a request body does not match the command grammar."""


@dataclass(frozen=True)
class RegisterItem:
    name: str
    description: str
    initial_price: float


@dataclass(frozen=True)
class PlaceBid:
    item_id: int
    bidder: str
    value: float


Command = Union[RegisterItem, PlaceBid]


def _split(body: str, expected: int, usage: str) -> list[str]:
    parts = body.strip().split(SEPARATOR)
    if len(parts) != expected:
        raise ParseError(f"Formato inválido. Use: {usage}")
    return parts


def _parse_float(raw: str, field: str) -> float:
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ParseError(f"{field} inválido: {raw!r}") from exc
    if not math.isfinite(value):
        raise ParseError(f"{field} inválido: {raw!r}")
    return value


def _parse_int(raw: str, field: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ParseError(f"{field} inválido: {raw!r}") from exc


def parse_register_item(body: str) -> RegisterItem:
    name, description, price = _split(body, 3, "nome;descricao;preco")
    if not name.strip():
        raise ParseError("O nome do item não pode ser vazio.")
    initial_price = _parse_float(price, "Preço inicial")
    if initial_price < 0:
        raise ParseError("O preço inicial não pode ser negativo.")
    return RegisterItem(name=name, description=description, initial_price=initial_price)


def parse_place_bid(body: str) -> PlaceBid:
    item_id, bidder, value = _split(body, 3, "idItem;cliente;valor")
    if not bidder.strip():
        raise ParseError("O nome do cliente não pode ser vazio.")
    parsed_value = _parse_float(value, "Valor do lance")
    if parsed_value <= 0:
        raise ParseError("O valor do lance deve ser maior que zero.")
    return PlaceBid(item_id=_parse_int(item_id, "ID do item"), bidder=bidder, value=parsed_value)


def parse_command(line: str) -> Command:
    """Parse a full command line as carried over TCP and UDP."""
    text = line.strip()
    verb, _, rest = text.partition(SEPARATOR)
    if verb == REGISTER_ITEM:
        return parse_register_item(rest)
    if verb == PLACE_BID:
        return parse_place_bid(rest)
    raise ParseError("Comando inválido.")


def parse_registration(body: str) -> tuple[Protocol, int]:
    parts = body.strip().split(SEPARATOR)
    if len(parts) != 2:
        raise ParseError("Formato inválido. Use: tipo;porta")
    raw_protocol, raw_port = parts
    try:
        protocol = Protocol.parse(raw_protocol)
    except ValueError as exc:
        raise ParseError(str(exc)) from exc
    port = _parse_int(raw_port, "Porta")
    if not 0 < port < 65536:
        raise ParseError(f"Porta fora do intervalo: {port}")
    return protocol, port


def is_ping(payload: str) -> bool:
    return payload.strip() == PING
