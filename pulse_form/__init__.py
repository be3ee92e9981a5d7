from pulse_form.accessor import get_in, set_in
from pulse_form.field import FieldRecord, FieldStore
from pulse_form.form import (
    Form,
    FormErrors,
    FormMode,
    RegisteredField,
    create_form,
    extract_value,
)
from pulse_form.path import Segment, to_path, to_string
from pulse_form.reactive import (
    Batch,
    Computed,
    Effect,
    Signal,
    flush_effects,
)
from pulse_form.validation import (
    ROOT_ERROR,
    VALIDATION_FAILED,
    Resolver,
    Validator,
    validate_field,
    validate_form,
)
from pulse_form.validators import (
    HasLength,
    IsEmail,
    IsInRange,
    IsNotEmpty,
    Matches,
    MatchesField,
)
