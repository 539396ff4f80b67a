#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Structural codecs used for request bodies, composite path/query values and
response decoding.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import threading
from typing import Any, Dict, Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from ..utils.exceptions import SerializationError


@runtime_checkable
class Codec(Protocol):
    """Protocol implemented by structural codecs."""

    content_type: str

    def serialize(self, obj: Any) -> str:
        """Serialize an object to structural text."""
        ...

    def deserialize(self, data: bytes, type_token: Any) -> Any:
        """Deserialize bytes into an instance of ``type_token``."""
        ...


def _type_name(type_token: Any) -> str:
    return getattr(type_token, "__name__", None) or repr(type_token)


class JSONCodec:
    """
    JSON codec backed by pydantic.

    Serialization accepts anything pydantic can dump (models, dataclasses,
    typed dicts, datetimes, enums, plain containers). Deserialization validates
    against the requested type; one ``TypeAdapter`` is built per type and
    reused.
    """

    content_type = "application/json"

    def __init__(self, *, by_alias: bool = True, exclude_none: bool = False) -> None:
        self.by_alias = by_alias
        self.exclude_none = exclude_none
        self._adapters: Dict[Any, TypeAdapter] = {}
        self._guard = threading.Lock()

    def adapter_for(self, type_token: Any) -> TypeAdapter:
        try:
            adapter = self._adapters.get(type_token)
        except TypeError:
            # Unhashable type tokens are rebuilt on each call.
            return TypeAdapter(type_token)
        if adapter is not None:
            return adapter

        adapter = TypeAdapter(type_token)
        with self._guard:
            return self._adapters.setdefault(type_token, adapter)

    def serialize(self, obj: Any) -> str:
        try:
            return to_json(obj, by_alias=self.by_alias, exclude_none=self.exclude_none).decode("utf-8")
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise SerializationError(
                operation="serialize",
                message=f"JSON serialization failed: {e}",
                data_type=type(obj).__name__,
                serialization_format="json",
                cause=e,
            ) from e

    def deserialize(self, data: bytes, type_token: Any) -> Any:
        if not data:
            return None
        try:
            return self.adapter_for(type_token).validate_json(data)
        except (ValidationError, TypeError) as e:
            raise SerializationError(
                operation="deserialize",
                message=f"JSON deserialization failed: {e}",
                data_type=_type_name(type_token),
                serialization_format="json",
                cause=e,
            ) from e


# Shared by dispatchers created without a codec.
DEFAULT_CODEC = JSONCodec()
