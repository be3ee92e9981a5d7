import io

from starlette.datastructures import FormData, UploadFile

from pulse_form import create_form
from pulse_form.form_data import normalize_form_data


def test_normalize_keeps_duplicates_and_files():
    upload = UploadFile(file=io.BytesIO(b"hello"), filename="hello.txt")
    data = FormData([("tags", "a"), ("tags", "b"), ("avatar", upload), ("name", "Ada")])
    normalized = normalize_form_data(data)
    assert normalized["tags"] == ["a", "b"]
    assert normalized["avatar"] is upload
    assert normalized["name"] == "Ada"


def test_normalize_passes_mappings_through():
    assert normalize_form_data({"a.b": 1}) == {"a.b": 1}


def test_load_form_data_writes_paths():
    form = create_form(initial_value={"addresses": [{"street": "Main", "city": "Springfield"}]})
    street = form.register("addresses.[0].street")
    form.load_form_data(FormData([("addresses.[0].street", "Elm"), ("user.name", "Ada")]))

    assert street.value() == "Elm"
    assert street.is_dirty() is True
    assert form.get_values() == {
        "addresses": [{"street": "Elm", "city": "Springfield"}],
        "user": {"name": "Ada"},
    }


def test_load_form_data_can_validate():
    form = create_form(initial_value={"name": ""})
    name = form.register("name", validate=lambda v, vs: "Required" if not v else None)
    form.load_form_data({"name": ""}, validate=True)
    assert name.error() == "Required"
