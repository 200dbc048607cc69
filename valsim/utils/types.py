from __future__ import annotations

from collections.abc import Mapping

JsonScalar = bool | int | float | str | None
JsonValue = JsonScalar | list["JsonValue"] | dict[str, "JsonValue"]
JsonDict = dict[str, JsonValue]

# Query string values accepted by the HTTP sources
QueryParams = Mapping[str, str | int | float | bool]
