import pytest

from errors import EmailInUse, InvalidCredentials, RoleMismatch, Unauthenticated
from identity import IdentityProvider


def test_register_signs_in_unverified_user(db):
    identity = IdentityProvider(db)
    user = identity.register({
        "name": "Ada", "email": "ada@example.com", "password": "secret", "role": "attendee",
        "interests": ["jazz", "hiking"], "city": "Berlin",
    })
    assert identity.get_current_user() == user
    assert user.verified is False
    assert user.interests == ["jazz", "hiking"]
    assert db.get_user_by_email("ada@example.com")["password"] != "secret"


def test_register_rejects_duplicate_email(db, attendee):
    with pytest.raises(EmailInUse):
        IdentityProvider(db).register({"name": "Copy", "email": attendee.email, "password": "x", "role": "attendee"})


def test_login_with_valid_credentials(db, organizer):
    identity = IdentityProvider(db)
    user = identity.login("organizer@example.com", "password123")
    assert user.id == organizer.id
    assert identity.get_current_user().role == "organizer"


@pytest.mark.parametrize("email,password", [
    ("organizer@example.com", "wrong"),
    ("nobody@example.com", "password123"),
])
def test_login_with_invalid_credentials(db, organizer, email, password):
    identity = IdentityProvider(db)
    with pytest.raises(InvalidCredentials):
        identity.login(email, password)
    assert identity.get_current_user() is None


def test_login_with_wrong_role_signs_out(db, organizer):
    identity = IdentityProvider(db)
    with pytest.raises(RoleMismatch) as exc:
        identity.login("organizer@example.com", "password123", expected_role="attendee")
    assert "not registered as a attendee" in exc.value.message
    assert identity.get_current_user() is None


def test_logout_clears_session(db, attendee):
    identity = IdentityProvider(db, current_user=attendee)
    identity.logout()
    assert identity.get_current_user() is None


def test_update_profile_ignores_identity_fields(db, attendee):
    identity = IdentityProvider(db, current_user=attendee)
    updated = identity.update_profile({"city": "Lisbon", "age": 31, "role": "organizer", "email": "new@example.com"})
    assert updated.city == "Lisbon"
    assert updated.age == 31
    assert updated.role == "attendee"
    assert updated.email == attendee.email
    assert db.get_user(attendee.id)["city"] == "Lisbon"


def test_update_profile_requires_session(db):
    with pytest.raises(Unauthenticated):
        IdentityProvider(db).update_profile({"city": "Lisbon"})


def test_update_profile_keeps_name_when_null(db, attendee):
    identity = IdentityProvider(db, current_user=attendee)
    updated = identity.update_profile({"name": None, "city": None})
    assert updated.name == attendee.name
    assert updated.city is None
