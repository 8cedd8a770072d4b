"""Settings validation helpers for list-valued environment variables."""

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a list of strings given either as a list, a JSON array or CSV.

    ``'["/api/","/v2/"]'`` and ``"/api/,/v2/"`` both yield ``["/api/", "/v2/"]``.
    Blank CSV items are dropped. Raises ValueError on malformed JSON, on a
    blank string, and on an empty result unless ``allow_empty`` is set.
    """
    if isinstance(value, list):
        items = value
    else:
        stripped = value.strip()
        if not stripped:
            raise ValueError("String list value must not be empty")
        if stripped.startswith("["):
            try:
                items = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
                raise ValueError("JSON value must be an array of strings")
        else:
            items = [item.strip() for item in stripped.split(",") if item.strip()]

    if not allow_empty and not items:
        raise ValueError("String list value must not be empty")
    return items


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands selected list fields to validators as raw strings.

    pydantic-settings JSON-decodes list-typed env values before validators run,
    which rejects CSV. Fields named in ``string_list_fields`` skip that step so
    parse_string_list can accept both forms.
    """

    def __init__(self, *args: Any, string_list_fields: frozenset[str], **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(*args, **kwargs)
        self._string_list_fields = string_list_fields

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self._string_list_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
