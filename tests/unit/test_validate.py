import pytest

from adgate.ad.models import ProvisionRequest
from adgate.validate import ValidationError, sanitize_user


@pytest.mark.parametrize(
    "username,expected",
    [
        ("jdoe", "jdoe"),
        ("JDoe", "jdoe"),
        ("  Jane.Doe  ", "jane.doe"),
        ("jane_doe-01", "jane_doe-01"),
        ("Jane@Example.Local", "jane@example.local"),
        ("ab", "ab"),
        ("a" * 64, "a" * 64),
    ],
)
def test_valid_usernames_are_lowercased(username, expected):
    req = sanitize_user(ProvisionRequest(username=username))
    assert req.username == expected


@pytest.mark.parametrize("username", ["jdoe", "JDOE", "Mixed.Case_1", "x@y.z"])
def test_sanitize_is_idempotent(username):
    once = sanitize_user(ProvisionRequest(username=username, organizational_unit="OU=Users"))
    snapshot = (once.username, once.organizational_unit)
    twice = sanitize_user(once)
    assert (twice.username, twice.organizational_unit) == snapshot


@pytest.mark.parametrize("username", ["", "   ", "\t\n"])
def test_missing_username(username):
    with pytest.raises(ValidationError, match="username required"):
        sanitize_user(ProvisionRequest(username=username))


@pytest.mark.parametrize(
    "username",
    [
        "a",
        "a" * 65,
        "j doe",
        "jdoe!",
        "cn=admin",
        "j,doe",
        "jdoe*",
        "(jdoe)",
        "jd\\oe",
        "jdöe",
    ],
)
def test_invalid_usernames(username):
    with pytest.raises(ValidationError, match="invalid username"):
        sanitize_user(ProvisionRequest(username=username))


def test_fields_are_trimmed_and_ou_lowercased():
    req = ProvisionRequest(
        username=" JDoe ",
        password="  S3cret Pw  ",
        given_name=" Jane ",
        surname=" Doe ",
        display_name=" Jane Doe ",
        mail=" jane@example.local ",
        phone=" +1 555 ",
        description=" test ",
        organizational_unit=" OU=Users,DC=Example ",
    )
    sanitize_user(req)
    assert req.username == "jdoe"
    assert req.password == "S3cret Pw"
    assert req.given_name == "Jane"
    assert req.surname == "Doe"
    assert req.display_name == "Jane Doe"
    assert req.mail == "jane@example.local"
    assert req.phone == "+1 555"
    assert req.description == "test"
    assert req.organizational_unit == "ou=users,dc=example"


def test_password_keeps_case_and_symbols():
    req = sanitize_user(ProvisionRequest(username="jdoe", password="Pa$$ W0rd!*()"))
    assert req.password == "Pa$$ W0rd!*()"
