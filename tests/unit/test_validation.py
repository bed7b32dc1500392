import pytest

from finadmin.utils.error_codes import ErrorCode
from finadmin.utils.exceptions import BadRequestException, NotFoundException
from finadmin.utils.validation import parse_object_id, validate_credentials, validate_otp_code


def test_validate_otp_code_trims():
    assert validate_otp_code(" 123456 ") == "123456"


@pytest.mark.parametrize("value", [None, "", "   "])
def test_validate_otp_code_requires_value(value):
    with pytest.raises(BadRequestException) as exc_info:
        validate_otp_code(value)
    assert exc_info.value.message == "OTP is required."
    assert exc_info.value.code == ErrorCode.E009.value
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("value", ["12345", "1234567", "12a456", "１２３４５６", "12 456"])
def test_validate_otp_code_rejects_non_six_digit(value):
    with pytest.raises(BadRequestException) as exc_info:
        validate_otp_code(value)
    assert exc_info.value.message == "OTP must be a 6-digit code."
    assert exc_info.value.details == {"otp": ["OTP must be a 6-digit code."]}


def test_validate_credentials_reports_missing_fields():
    with pytest.raises(BadRequestException) as exc_info:
        validate_credentials("", None)
    assert exc_info.value.message == "Email and password are required."
    assert set(exc_info.value.details) == {"email", "password"}

    with pytest.raises(BadRequestException) as exc_info:
        validate_credentials("a@b.c", "")
    assert set(exc_info.value.details) == {"password"}


def test_parse_object_id_maps_garbage_to_not_found():
    with pytest.raises(NotFoundException) as exc_info:
        parse_object_id("nope", label="Backup job")
    assert exc_info.value.message == "Backup job not found."
