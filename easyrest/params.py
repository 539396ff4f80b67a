#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Parameter role markers for contract methods.

Use them inside ``typing.Annotated``::

    @get("/users/{user_id}")
    def get_user(self, user_id: Annotated[int, Path()], fields: Annotated[str, Query("f")]) -> User:
        ...

Unmarked parameters become query parameters under their own name; a
parameter annotated ``CancellationToken`` carries the caller's cancellation
signal.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from dataclasses import dataclass

from .core.contract import ParameterMarker, ParameterRole


@dataclass(frozen=True)
class Path(ParameterMarker):
    """Substituted into the ``{name}`` placeholder of the method path."""

    role = ParameterRole.PATH


@dataclass(frozen=True)
class Query(ParameterMarker):
    """Appended to the query string."""

    role = ParameterRole.QUERY


@dataclass(frozen=True)
class Header(ParameterMarker):
    """Sent as a request header."""

    role = ParameterRole.HEADER


@dataclass(frozen=True)
class Body(ParameterMarker):
    """Sent in the request body; several body parameters need a body encoding."""

    role = ParameterRole.BODY


__all__ = ["Path", "Query", "Header", "Body"]
