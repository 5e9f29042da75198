"""Hex encoded binary fields."""
from __future__ import annotations

from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer


def _from_hex(value: object) -> bytes:
    if isinstance(value, bytes):
        return value
    if not isinstance(value, str):
        raise ValueError("expected a hex string")
    try:
        return bytes.fromhex(value.removeprefix("0x"))
    except ValueError as exc:
        raise ValueError("invalid hex string") from exc


HexBytes = Annotated[
    bytes,
    BeforeValidator(_from_hex),
    PlainSerializer(lambda value: "0x" + value.hex(), return_type=str),
]

__all__ = ["HexBytes"]
