from typing import Any, Mapping

from starlette.datastructures import FormData as StarletteFormData
from starlette.datastructures import UploadFile

FormValue = str | UploadFile
FormData = dict[str, FormValue | list[FormValue]]


def _coerce(value: Any) -> FormValue:
    return value if isinstance(value, UploadFile) else str(value)


def normalize_form_data(raw: StarletteFormData | Mapping[str, Any]) -> FormData:
    """Flatten submitted form data into `{path: value}`.

    Keys are field paths. A key sent more than once becomes a list of its
    values. UploadFiles are kept intact, every other value becomes a string.
    Plain mappings are passed through as a shallow copy.
    """
    if not isinstance(raw, StarletteFormData):
        return dict(raw)

    normalized: FormData = {}
    for key in raw.keys():
        items = [_coerce(value) for value in raw.getlist(key)]
        normalized[key] = items[0] if len(items) == 1 else items
    return normalized
