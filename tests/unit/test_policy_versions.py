import pytest

from stableride.errors import ValidationError
from stableride.services.policies import bump_minor, next_version


def test_bump_minor_resets_patch():
    assert bump_minor("1.0.0") == "1.1.0"
    assert bump_minor("2.3.7") == "2.4.0"


def test_explicit_version_must_increase():
    assert next_version("1.1.0", "2.0.0") == "2.0.0"
    with pytest.raises(ValidationError, match="must be greater"):
        next_version("1.1.0", "1.0.9")


def test_default_is_minor_bump():
    assert next_version("1.9.0", None) == "1.10.0"


def test_invalid_version():
    with pytest.raises(ValidationError):
        bump_minor("v1")
