"""Shared schema types."""

from typing import Annotated, Any

from pydantic import BeforeValidator


def _byte_string(value: Any) -> str:
    if value is None:
        return "0"
    return str(int(value))


# Byte counts can pass 2**53, so every response carries them as strings.
ByteSize = Annotated[str, BeforeValidator(_byte_string)]
