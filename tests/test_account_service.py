import logging
from datetime import timedelta

import pytest

from pharmacare.application.services import account_service as account_module
from pharmacare.application.services.account_service import (
    NEXT_LOGIN,
    NEXT_VERIFY_OTP,
    RESET_REQUESTED_MESSAGE,
    AccountService,
)
from pharmacare.domain.exceptions import (
    AccountInactive,
    EmailNotVerified,
    EmailTaken,
    InvalidCredentials,
    InvalidToken,
    MissingFields,
    NoPendingVerification,
    OtpExpired,
    OtpMismatch,
    PasswordMismatch,
    RegistrationFailed,
    ResetDeliveryFailed,
    StoreError,
    UserNotFound,
    WeakPassword,
)
from pharmacare.domain.models import ROLE_PHARMACIST, ROLE_USER, RegistrationProfile
from pharmacare.domain.models.session import (
    SESSION_CSRF_TOKEN,
    SESSION_PENDING_EMAIL,
    SESSION_USER_ID,
    SESSION_USER_NAME,
    SESSION_USER_ROLE,
)
from pharmacare.infrastructure.session_store import MappingSessionStore

from conftest import START

PASSWORD = "Secret1!"


def profile(email: str = "a@x.com", **kwargs) -> RegistrationProfile:
    return RegistrationProfile(
        email=email,
        first_name=kwargs.pop("first_name", "Amal"),
        last_name=kwargs.pop("last_name", "Haddad"),
        **kwargs,
    )


async def register_and_verify(account_service, users, email="a@x.com", **kwargs):
    session = MappingSessionStore()
    await account_service.register(session, profile(email, **kwargs), PASSWORD, PASSWORD)
    await account_service.verify_otp(session, users.stored(email).email_otp)
    return users.stored(email)


# Registration -----------------------------------------------------------------
async def test_register_creates_unverified_user_with_pending_otp(account_service, users, session, notifier):
    outcome = await account_service.register(session, profile(), PASSWORD, PASSWORD)

    user = users.stored("a@x.com")
    assert outcome.next_step == NEXT_VERIFY_OTP
    assert user.email_confirmed is False
    assert user.role == ROLE_USER
    assert len(user.email_otp) == 6 and user.email_otp.isdigit()
    assert 100000 <= int(user.email_otp) <= 999999
    assert user.created_at == START
    assert user.email_otp_expires_at == user.created_at + timedelta(minutes=10)
    assert user.password_hash != PASSWORD
    assert session.get(SESSION_PENDING_EMAIL) == "a@x.com"

    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == "a@x.com"
    assert notifier.sent[0]["subject"] == "Your PharmaCare verification code"
    assert user.email_otp in notifier.sent[0]["html_body"]


async def test_register_normalizes_email(account_service, users, session):
    await account_service.register(session, profile("  Mixed@Example.COM "), PASSWORD, PASSWORD)

    assert users.stored("mixed@example.com").email == "mixed@example.com"
    assert session.get(SESSION_PENDING_EMAIL) == "mixed@example.com"


async def test_register_keeps_explicit_role(account_service, users, session):
    await account_service.register(session, profile(role=ROLE_PHARMACIST), PASSWORD, PASSWORD)

    assert users.stored("a@x.com").role == ROLE_PHARMACIST


async def test_register_rejects_unknown_role(account_service, users, session):
    with pytest.raises(ValueError):
        await account_service.register(session, profile(role="Owner"), PASSWORD, PASSWORD)

    assert users.get_by_email("a@x.com") is None
    assert session.get(SESSION_PENDING_EMAIL) is None


async def test_register_rejects_mismatched_confirmation(account_service, users, session):
    with pytest.raises(PasswordMismatch):
        await account_service.register(session, profile(), PASSWORD, "Secret2!")

    assert not users.exists("a@x.com")
    assert session.get(SESSION_PENDING_EMAIL) is None


@pytest.mark.parametrize(
    "password, violations",
    [
        ("Sh0rt!", ["min_length"]),
        ("lowercase1!", ["uppercase"]),
        ("NoSpecial12", ["special_character"]),
        ("abc", ["min_length", "uppercase", "special_character"]),
    ],
)
async def test_register_reports_every_violated_password_rule(account_service, session, password, violations):
    with pytest.raises(WeakPassword) as excinfo:
        await account_service.register(session, profile(), password, password)

    assert excinfo.value.violations == violations


async def test_register_rejects_taken_email(account_service, session, notifier):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)

    with pytest.raises(EmailTaken):
        await account_service.register(MappingSessionStore(), profile("A@X.com"), PASSWORD, PASSWORD)
    assert len(notifier.sent) == 1


async def test_register_maps_store_conflict_to_email_taken(account_service, users, session, monkeypatch):
    # Another request registered the address between the check and the insert.
    monkeypatch.setattr(users, "exists", lambda email: False)
    await account_service.register(session, profile(), PASSWORD, PASSWORD)

    with pytest.raises(EmailTaken):
        await account_service.register(MappingSessionStore(), profile(), PASSWORD, PASSWORD)


async def test_register_reports_store_failure_generically(account_service, users, session):
    def broken_create(user):
        raise StoreError("disk I/O error")

    users.create = broken_create

    with pytest.raises(RegistrationFailed) as excinfo:
        await account_service.register(session, profile(), PASSWORD, PASSWORD)

    assert excinfo.value.message == "Registration failed."
    assert session.get(SESSION_PENDING_EMAIL) is None


async def test_register_treats_missing_created_user_as_failure(account_service, users, session, notifier):
    users.create = lambda user: None

    with pytest.raises(RegistrationFailed):
        await account_service.register(session, profile(), PASSWORD, PASSWORD)
    assert notifier.sent == []


async def test_register_requires_names(account_service, session):
    with pytest.raises(MissingFields) as excinfo:
        await account_service.register(session, profile(first_name=" ", last_name=""), PASSWORD, PASSWORD)

    assert excinfo.value.fields == ["first_name", "last_name"]


async def test_register_survives_delivery_failure_and_logs_code(account_service, users, session, notifier, caplog):
    notifier.fail = True

    with caplog.at_level(logging.WARNING, logger=account_module.__name__):
        outcome = await account_service.register(session, profile(), PASSWORD, PASSWORD)

    otp = users.stored("a@x.com").email_otp
    assert outcome.next_step == NEXT_VERIFY_OTP
    assert session.get(SESSION_PENDING_EMAIL) == "a@x.com"
    assert otp in caplog.text


async def test_register_survives_unexpected_notifier_error(users, hasher, clock, session, caplog):
    class BrokenNotifier:
        async def send(self, to, subject, html_body):
            raise RuntimeError("transport blew up")

    account_service = AccountService(users, BrokenNotifier(), hasher, clock=clock)

    with caplog.at_level(logging.WARNING, logger=account_module.__name__):
        outcome = await account_service.register(session, profile(), PASSWORD, PASSWORD)

    otp = users.stored("a@x.com").email_otp
    assert outcome.next_step == NEXT_VERIFY_OTP
    assert session.get(SESSION_PENDING_EMAIL) == "a@x.com"
    assert otp in caplog.text

    await account_service.resend_otp(session)
    await account_service.verify_otp(session, users.stored("a@x.com").email_otp)
    assert users.stored("a@x.com").email_confirmed is True


# OTP verification ---------------------------------------------------------------
async def test_verify_otp_confirms_email_and_clears_state(account_service, users, session):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    code = users.stored("a@x.com").email_otp

    outcome = await account_service.verify_otp(session, code)

    user = users.stored("a@x.com")
    assert outcome.next_step == NEXT_LOGIN
    assert user.email_confirmed is True
    assert user.email_otp is None
    assert user.email_otp_expires_at is None
    assert session.get(SESSION_PENDING_EMAIL) is None

    with pytest.raises(NoPendingVerification):
        await account_service.verify_otp(session, code)


async def test_verify_otp_example_scenario(account_service, users, session, monkeypatch):
    monkeypatch.setattr(account_module, "generate_otp", lambda: "483920")
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    assert users.stored("a@x.com").email_otp_expires_at == START + timedelta(minutes=10)

    await account_service.verify_otp(session, "483920")
    assert users.stored("a@x.com").email_confirmed is True

    with pytest.raises(NoPendingVerification):
        await account_service.verify_otp(session, "483920")


async def test_verify_otp_rejects_wrong_code_and_keeps_pending(account_service, users, session, monkeypatch):
    monkeypatch.setattr(account_module, "generate_otp", lambda: "483920")
    await account_service.register(session, profile(), PASSWORD, PASSWORD)

    with pytest.raises(OtpMismatch):
        await account_service.verify_otp(session, "483921")
    with pytest.raises(OtpMismatch):
        await account_service.verify_otp(session, " 483920")

    assert session.get(SESSION_PENDING_EMAIL) == "a@x.com"
    assert users.stored("a@x.com").email_confirmed is False


async def test_verify_otp_accepts_code_at_exact_expiry(account_service, users, session, clock):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    clock.advance(minutes=10)

    await account_service.verify_otp(session, users.stored("a@x.com").email_otp)

    assert users.stored("a@x.com").email_confirmed is True


async def test_verify_otp_rejects_expired_code(account_service, users, session, clock):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(OtpExpired):
        await account_service.verify_otp(session, users.stored("a@x.com").email_otp)
    assert users.stored("a@x.com").email_confirmed is False


async def test_verify_otp_without_pending_email(account_service, session):
    with pytest.raises(NoPendingVerification):
        await account_service.verify_otp(session, "123456")


async def test_verify_otp_for_vanished_user_clears_marker(account_service, session):
    session.set(SESSION_PENDING_EMAIL, "ghost@x.com")

    with pytest.raises(UserNotFound):
        await account_service.verify_otp(session, "123456")
    assert session.get(SESSION_PENDING_EMAIL) is None


async def test_verify_otp_short_circuits_when_already_confirmed(account_service, users, session):
    await register_and_verify(account_service, users)
    session.set(SESSION_PENDING_EMAIL, "a@x.com")

    outcome = await account_service.verify_otp(session, "000000")

    assert outcome.message == "Email already verified!"
    assert outcome.next_step == NEXT_LOGIN
    assert session.get(SESSION_PENDING_EMAIL) is None


async def test_verify_otp_view_reads_without_mutating(account_service, users, session):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    before = users.stored("a@x.com")

    outcome = account_service.verify_otp_view(session)

    assert outcome.next_step == NEXT_VERIFY_OTP
    assert users.stored("a@x.com") == before
    assert session.get(SESSION_PENDING_EMAIL) == "a@x.com"


async def test_verify_otp_view_requires_pending_email(account_service, session):
    with pytest.raises(NoPendingVerification):
        account_service.verify_otp_view(session)


# Resend -------------------------------------------------------------------------
async def test_resend_otp_replaces_code_and_expiry(account_service, users, session, clock, notifier, monkeypatch):
    codes = iter(["111111", "222222", "333333"])
    monkeypatch.setattr(account_module, "generate_otp", lambda: next(codes))
    await account_service.register(session, profile(), PASSWORD, PASSWORD)

    clock.advance(minutes=3)
    outcome = await account_service.resend_otp(session)
    user = users.stored("a@x.com")
    assert outcome.next_step == NEXT_VERIFY_OTP
    assert user.email_otp == "222222"
    assert user.email_otp_expires_at == START + timedelta(minutes=13)
    assert notifier.sent[-1]["subject"] == "Your New PharmaCare Verification Code"

    clock.advance(minutes=1)
    await account_service.resend_otp(session)
    user = users.stored("a@x.com")
    assert user.email_otp == "333333"
    assert user.email_otp_expires_at == START + timedelta(minutes=14)

    with pytest.raises(OtpMismatch):
        await account_service.verify_otp(session, "111111")
    await account_service.verify_otp(session, "333333")
    assert users.stored("a@x.com").email_confirmed is True


async def test_resend_otp_never_reuses_current_code(account_service, users, session, monkeypatch):
    codes = iter(["111111", "111111", "111111", "444444"])
    monkeypatch.setattr(account_module, "generate_otp", lambda: next(codes))
    await account_service.register(session, profile(), PASSWORD, PASSWORD)

    await account_service.resend_otp(session)

    assert users.stored("a@x.com").email_otp == "444444"


async def test_resend_otp_revives_expired_verification(account_service, users, session, clock):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    clock.advance(hours=2)

    await account_service.resend_otp(session)

    await account_service.verify_otp(session, users.stored("a@x.com").email_otp)
    assert users.stored("a@x.com").email_confirmed is True


async def test_resend_otp_persists_even_when_delivery_fails(account_service, users, session, notifier, caplog):
    await account_service.register(session, profile(), PASSWORD, PASSWORD)
    notifier.fail = True

    with caplog.at_level(logging.WARNING, logger=account_module.__name__):
        await account_service.resend_otp(session)

    assert users.stored("a@x.com").email_otp in caplog.text


async def test_resend_otp_when_already_confirmed(account_service, users, session, notifier):
    await register_and_verify(account_service, users)
    session.set(SESSION_PENDING_EMAIL, "a@x.com")
    sent_before = len(notifier.sent)

    outcome = await account_service.resend_otp(session)

    assert outcome.next_step == NEXT_LOGIN
    assert session.get(SESSION_PENDING_EMAIL) is None
    assert len(notifier.sent) == sent_before


async def test_resend_otp_requires_pending_email(account_service, session):
    with pytest.raises(NoPendingVerification):
        await account_service.resend_otp(session)


# Login --------------------------------------------------------------------------
async def test_login_sets_session_and_returns_standard_landing(account_service, users, session):
    user = await register_and_verify(account_service, users)

    result = await account_service.login(session, "A@x.com", PASSWORD)

    assert result.landing_route == "/frontend/index"
    assert session.get(SESSION_USER_ID) == user.id
    assert session.get(SESSION_USER_NAME) == "Amal Haddad"
    assert session.get(SESSION_USER_ROLE) == ROLE_USER


async def test_login_drops_pending_marker_and_submission_token(account_service, users, session):
    await register_and_verify(account_service, users)
    session.set(SESSION_PENDING_EMAIL, "a@x.com")
    session.set(SESSION_CSRF_TOKEN, "anonymous-token")

    await account_service.login(session, "a@x.com", PASSWORD)

    assert session.get(SESSION_PENDING_EMAIL) is None
    assert session.get(SESSION_CSRF_TOKEN) is None


async def test_login_routes_privileged_roles_to_admin_landing(account_service, users, session):
    await register_and_verify(account_service, users, role=ROLE_PHARMACIST)

    result = await account_service.login(session, "a@x.com", PASSWORD)

    assert result.landing_route == "/admin/index"
    assert account_service.login_view(session) == "/admin/index"


async def test_login_unverified_user_with_correct_password(account_service, session):
    await account_service.register(MappingSessionStore(), profile(), PASSWORD, PASSWORD)

    with pytest.raises(EmailNotVerified):
        await account_service.login(session, "a@x.com", PASSWORD)
    assert session.get(SESSION_USER_ID) is None


async def test_login_unverified_user_with_wrong_password_is_invalid_credentials(account_service, session):
    await account_service.register(MappingSessionStore(), profile(), PASSWORD, PASSWORD)

    with pytest.raises(InvalidCredentials):
        await account_service.login(session, "a@x.com", "Wrong1!!")


async def test_login_failures_are_indistinguishable(account_service, users, session):
    await register_and_verify(account_service, users)

    with pytest.raises(InvalidCredentials) as unknown:
        await account_service.login(session, "nobody@x.com", PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        await account_service.login(session, "a@x.com", "Wrong1!!")

    assert type(unknown.value) is type(wrong.value)
    assert unknown.value.message == wrong.value.message == "Invalid email or password."


async def test_login_store_failure_reads_as_invalid_credentials(account_service, users, session):
    def broken(email):
        raise StoreError("database is locked")

    users.get_by_email = broken

    with pytest.raises(InvalidCredentials):
        await account_service.login(session, "a@x.com", PASSWORD)


async def test_login_inactive_account(account_service, users, session):
    user = await register_and_verify(account_service, users)
    user.is_active = False
    users.update(user)

    with pytest.raises(AccountInactive):
        await account_service.login(session, "a@x.com", PASSWORD)


async def test_login_requires_both_fields(account_service, session):
    with pytest.raises(MissingFields):
        await account_service.login(session, "", PASSWORD)
    with pytest.raises(MissingFields):
        await account_service.login(session, "a@x.com", "   ")


async def test_login_view_and_logout(account_service, users, session):
    await register_and_verify(account_service, users)
    assert account_service.login_view(session) is None

    await account_service.login(session, "a@x.com", PASSWORD)
    assert account_service.login_view(session) == "/frontend/index"

    outcome = account_service.logout(session)
    assert outcome.next_step == NEXT_LOGIN
    assert session.get(SESSION_USER_ID) is None
    assert account_service.login_view(session) is None


# Password reset -------------------------------------------------------------------
async def test_forgot_password_issues_token_with_one_hour_expiry(account_service, users, notifier):
    await register_and_verify(account_service, users)

    outcome = await account_service.forgot_password("a@x.com")

    user = users.stored("a@x.com")
    assert outcome.message == RESET_REQUESTED_MESSAGE
    assert len(user.password_reset_token) >= 22
    assert user.password_reset_expires_at == START + timedelta(hours=1)
    mail = notifier.sent[-1]
    assert mail["subject"] == "Password Reset Request"
    assert account_service.reset_link(user.password_reset_token) in mail["html_body"].replace("&amp;", "&")


async def test_forgot_password_unknown_email_is_generic(account_service, notifier):
    with pytest.raises(UserNotFound) as excinfo:
        await account_service.forgot_password("nobody@x.com")

    assert excinfo.value.message == RESET_REQUESTED_MESSAGE
    assert notifier.sent == []


async def test_forgot_password_requires_email(account_service):
    with pytest.raises(MissingFields):
        await account_service.forgot_password("  ")


async def test_forgot_password_reports_delivery_failure_after_persisting(account_service, users, notifier):
    await register_and_verify(account_service, users)
    notifier.fail = True

    with pytest.raises(ResetDeliveryFailed):
        await account_service.forgot_password("a@x.com")

    assert users.stored("a@x.com").password_reset_token is not None


async def test_reset_password_commits_new_credential_once(account_service, users, session):
    await register_and_verify(account_service, users)
    await account_service.forgot_password("a@x.com")
    token = users.stored("a@x.com").password_reset_token

    assert account_service.reset_password_view(token).message
    outcome = await account_service.reset_password(token, "Newpass9#")

    user = users.stored("a@x.com")
    assert outcome.next_step == NEXT_LOGIN
    assert user.password_reset_token is None
    assert user.password_reset_expires_at is None
    assert "Newpass9#" not in user.password_hash

    with pytest.raises(InvalidToken):
        await account_service.reset_password(token, "Another9#")
    with pytest.raises(InvalidCredentials):
        await account_service.login(session, "a@x.com", PASSWORD)
    result = await account_service.login(session, "a@x.com", "Newpass9#")
    assert result.user.email == "a@x.com"


async def test_reset_password_view_does_not_consume_token(account_service, users):
    await register_and_verify(account_service, users)
    await account_service.forgot_password("a@x.com")
    token = users.stored("a@x.com").password_reset_token

    account_service.reset_password_view(token)
    account_service.reset_password_view(token)

    assert users.stored("a@x.com").password_reset_token == token


async def test_reset_password_rejects_weak_password_without_consuming_token(account_service, users):
    await register_and_verify(account_service, users)
    await account_service.forgot_password("a@x.com")
    token = users.stored("a@x.com").password_reset_token

    with pytest.raises(WeakPassword):
        await account_service.reset_password(token, "weak")

    assert users.stored("a@x.com").password_reset_token == token


@pytest.mark.parametrize("token", ["", "not-a-token"])
async def test_reset_password_view_rejects_unknown_tokens(account_service, token):
    with pytest.raises(InvalidToken):
        account_service.reset_password_view(token)


async def test_reset_password_requires_token_and_password(account_service):
    with pytest.raises(MissingFields):
        await account_service.reset_password("", "Newpass9#")
    with pytest.raises(MissingFields):
        await account_service.reset_password("token", "")


async def test_expired_reset_token_then_new_request(account_service, users, clock):
    await register_and_verify(account_service, users)
    await account_service.forgot_password("a@x.com")
    first = users.stored("a@x.com").password_reset_token

    clock.advance(hours=1)
    account_service.reset_password_view(first)

    clock.advance(seconds=1)
    with pytest.raises(InvalidToken):
        account_service.reset_password_view(first)
    with pytest.raises(InvalidToken):
        await account_service.reset_password(first, "Newpass9#")

    await account_service.forgot_password("a@x.com")
    second = users.stored("a@x.com").password_reset_token
    assert second != first
    assert users.stored("a@x.com").password_reset_expires_at == clock.now + timedelta(hours=1)
    await account_service.reset_password(second, "Newpass9#")
