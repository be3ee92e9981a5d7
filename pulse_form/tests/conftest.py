import pytest

from pulse_form.reactive import flush_effects


@pytest.fixture(autouse=True)
def _clean_global_batch():  # pyright: ignore[reportUnusedFunction]
    # A test that ends before the loop flushed leaves effects queued
    flush_effects()
    yield
    flush_effects()
