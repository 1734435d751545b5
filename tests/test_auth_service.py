"""Authentication service tests."""

import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.models.account import LinkedAccount
from app.models.user import User, UserRole, UserStatus
from app.schemas.auth import ExternalProfile, ProviderTokens, SignUpRequest
from app.services.auth_service import resolve_redirect_target
from app.services.exceptions import (
    EmailTakenError,
    InvalidCredentialsError,
    OAuthAccountNotLinkedError,
    OAuthCallbackError,
    OAuthOnlyUserError,
    StorageError,
    UserNotFoundError,
    ValidationError,
)
from app.services.passwords import verify_password
from app.services.providers import CREDENTIALS, GITHUB
from app.services.user_store import UserStore


def github_profile(**overrides) -> ExternalProfile:
    data = {
        "provider_account_id": "583231",
        "email": "octo@example.com",
        "name": "Octo Cat",
        "image": "https://avatars.githubusercontent.com/u/583231",
    }
    data.update(overrides)
    return ExternalProfile(**data)


class TestSignUp:
    """Tests for credential registration."""

    def test_creates_inactive_user(self, auth_service, db_session, location_resolver):
        data = SignUpRequest(
            name="Jane Doe",
            email="Jane@Example.com",
            password="Passw0rd!",
            confirm_password="Passw0rd!",
        )

        result = auth_service.sign_up(data, client_ip="203.0.113.7")

        assert result.success is True
        assert result.user.email == "jane@example.com"
        assert result.onboarding.referral_used is False
        assert location_resolver.calls == ["203.0.113.7"]

        user = db_session.query(User).one()
        assert user.status == UserStatus.INACTIVE
        assert user.role == UserRole.USER
        assert user.country_code == "GB"
        assert user.country == "United Kingdom"
        assert verify_password("Passw0rd!", user.password_hash)

    def test_email_collision_ignores_case(self, auth_service, make_user):
        make_user(email="jane@example.com")
        data = SignUpRequest(
            name="Jane Doe",
            email="JANE@example.com",
            password="Passw0rd!",
            confirm_password="Passw0rd!",
        )

        with pytest.raises(EmailTakenError):
            auth_service.sign_up(data)


class TestCredentialSignIn:
    """Tests for email and password sign-in."""

    def test_success(self, auth_service, make_user):
        user = make_user(email="member@example.com", password="Correct123", status=UserStatus.INACTIVE)

        identity = auth_service.authenticate(CREDENTIALS, email="Member@Example.com", password="Correct123")

        assert identity.id == user.id
        assert identity.email == "member@example.com"
        assert identity.status == UserStatus.INACTIVE
        assert identity.role == UserRole.USER
        assert identity.country == "KE"
        assert identity.referral_code == user.referral_code

    def test_wrong_password(self, auth_service, make_user):
        make_user(email="member@example.com", password="Correct123")

        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate_credentials("member@example.com", "Wrong1234")

    def test_unknown_email(self, auth_service):
        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate_credentials("ghost@example.com", "Correct123")

    def test_banned_user_fails_even_with_correct_password(self, auth_service, make_user):
        make_user(email="member@example.com", password="Correct123", status=UserStatus.BANNED)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            auth_service.authenticate_credentials("member@example.com", "Correct123")
        assert exc_info.value.message == "Invalid email or password"

    def test_user_without_password(self, auth_service, make_user):
        make_user(email="member@example.com")

        for attempt in ("Correct123", "", "anything"):
            with pytest.raises(OAuthOnlyUserError):
                auth_service.authenticate_credentials("member@example.com", attempt)

    def test_missing_password_argument(self, auth_service):
        with pytest.raises(ValidationError):
            auth_service.authenticate(CREDENTIALS, email="member@example.com")


class TestOAuthSignIn:
    """Tests for GitHub sign-in, linking and account creation."""

    def test_links_existing_user(self, auth_service, db_session, make_user):
        user = make_user(
            email="octo@example.com",
            password="Correct123",
            role=UserRole.ADMIN,
            status=UserStatus.INACTIVE,
            referral_code="keepme12",
        )

        identity = auth_service.authenticate(
            GITHUB,
            profile=github_profile(email="Octo@Example.com"),
            tokens=ProviderTokens(access_token="gho_abc", token_type="bearer", scope="read:user"),
        )

        assert identity.id == user.id
        assert identity.role == UserRole.ADMIN
        assert identity.status == UserStatus.INACTIVE
        assert identity.referral_code == "keepme12"

        account = db_session.query(LinkedAccount).one()
        assert account.user_id == user.id
        assert account.provider == "github"
        assert account.provider_account_id == "583231"
        assert account.access_token == "gho_abc"
        assert account.scope == "read:user"

        db_session.refresh(user)
        assert user.image == "https://avatars.githubusercontent.com/u/583231"
        assert db_session.query(User).count() == 1

    def test_link_keeps_existing_image(self, auth_service, db_session, make_user):
        user = make_user(email="octo@example.com", image="https://example.com/me.png")

        auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

        db_session.refresh(user)
        assert user.image == "https://example.com/me.png"

    def test_repeat_sign_in_does_not_duplicate_link(self, auth_service, db_session, make_user):
        make_user(email="octo@example.com")

        auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())
        auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

        assert db_session.query(LinkedAccount).count() == 1

    def test_creates_new_user(self, auth_service, db_session, location_resolver):
        identity = auth_service.authenticate(
            GITHUB,
            profile=github_profile(),
            tokens=ProviderTokens(access_token="gho_abc"),
            client_ip="198.51.100.4",
        )

        user = db_session.query(User).one()
        assert identity.id == user.id
        assert user.email == "octo@example.com"
        assert user.status == UserStatus.ACTIVE
        assert user.role == UserRole.USER
        assert user.password_hash is None
        assert user.country_code == "GB"
        assert len(user.referral_code) == 8
        assert location_resolver.calls == ["198.51.100.4"]

        account = db_session.query(LinkedAccount).one()
        assert account.user_id == user.id
        assert account.access_token == "gho_abc"

    def test_new_user_default_name(self, auth_service, db_session):
        auth_service.authenticate_oauth(GITHUB, github_profile(name=None), ProviderTokens())

        assert db_session.query(User).one().name == "GitHub User"

    def test_identity_linked_to_another_user(self, auth_service, make_user):
        make_user(email="first@example.com")
        auth_service.authenticate_oauth(
            GITHUB, github_profile(email="first@example.com"), ProviderTokens()
        )
        make_user(email="second@example.com")

        with pytest.raises(OAuthAccountNotLinkedError):
            auth_service.authenticate_oauth(
                GITHUB, github_profile(email="second@example.com"), ProviderTokens()
            )

    def test_auto_link_disabled(self, auth_service, db_session, make_user, monkeypatch):
        monkeypatch.setattr(settings, "OAUTH_AUTO_LINK_BY_EMAIL", False)
        make_user(email="octo@example.com")

        with pytest.raises(OAuthAccountNotLinkedError):
            auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())
        assert db_session.query(LinkedAccount).count() == 0

    def test_banned_user_refused(self, auth_service, make_user):
        make_user(email="octo@example.com", status=UserStatus.BANNED)

        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

    def test_missing_profile(self, auth_service):
        with pytest.raises(OAuthCallbackError):
            auth_service.authenticate(GITHUB)

    def test_creation_is_atomic(self, auth_service, db_session, monkeypatch):
        def fail(self, **kwargs):
            raise SQLAlchemyError("insert failed")

        monkeypatch.setattr(UserStore, "add_linked_account", fail)

        with pytest.raises(StorageError):
            auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

        assert db_session.query(User).count() == 0
        assert db_session.query(LinkedAccount).count() == 0


class TestAuthMethods:
    """Tests for the auth-methods query and password setup."""

    def test_oauth_only_user(self, auth_service, db_session):
        identity = auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

        methods = auth_service.get_auth_methods(identity.id)

        assert methods.has_password is False
        assert methods.oauth_providers == ["github"]
        assert methods.has_github is True

    def test_unknown_user(self, auth_service):
        with pytest.raises(UserNotFoundError):
            auth_service.get_auth_methods(uuid.uuid4())

    def test_setup_password(self, auth_service, db_session):
        identity = auth_service.authenticate_oauth(GITHUB, github_profile(), ProviderTokens())

        auth_service.setup_password(identity.id, "Str0ngPass")

        assert auth_service.get_auth_methods(identity.id).has_password is True
        signed_in = auth_service.authenticate_credentials("octo@example.com", "Str0ngPass")
        assert signed_in.id == identity.id

    @pytest.mark.parametrize(
        "password, message",
        [
            ("Sh0rt", "Password must be at least 8 characters long"),
            ("nouppercase1", "Password must contain at least one uppercase letter"),
            ("NOLOWERCASE1", "Password must contain at least one lowercase letter"),
            ("NoNumbersHere", "Password must contain at least one number"),
        ],
    )
    def test_setup_password_strength(self, auth_service, password, message):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.setup_password(uuid.uuid4(), password)
        assert exc_info.value.message == message
        assert exc_info.value.field_errors == {"password": message}

    def test_setup_password_unknown_user(self, auth_service):
        with pytest.raises(UserNotFoundError):
            auth_service.setup_password(uuid.uuid4(), "Str0ngPass")


class TestRedirectTarget:
    """Tests for the post-login destination."""

    @pytest.mark.parametrize(
        "callback, expected",
        [
            (None, "/dashboard"),
            ("/settings", "/settings"),
            ("https://evil.example.com", "/dashboard"),
            ("//evil.example.com", "/dashboard"),
            ("/\\evil.example.com", "/dashboard"),
            ("/\t/evil.example.com", "/dashboard"),
            ("/\n/evil.example.com", "/dashboard"),
            ("/settings\x7f", "/dashboard"),
        ],
    )
    def test_resolve(self, callback, expected):
        assert resolve_redirect_target(callback) == expected
