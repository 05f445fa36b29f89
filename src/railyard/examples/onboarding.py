"""User onboarding workflows built on the railyard pipeline engine.

Demonstrates guards, steps with compensation, a premium-only branch and
switch routing by user type and by email domain.  The "user directory" is
an in-memory stand-in for a real user store so the compensations have
something observable to undo.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from railyard.pipeline import BaseStep, Failure, Pipeline, PipelineEventEmitter, Result, Success

logger = logging.getLogger(__name__)


class OnboardingError(str, enum.Enum):
    """Errors any onboarding pipeline can report."""

    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    USER_ALREADY_EXISTS = "user_already_exists"
    SEND_FAILED = "send_failed"


class UserType(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


@dataclass(frozen=True)
class OnboardingContext:
    """Immutable state threaded through an onboarding pipeline."""

    email: str
    password: str
    user_type: UserType | None = None
    premium: bool = False
    user_id: str | None = None
    email_verified: bool = False
    log: tuple[str, ...] = ()

    def record(self, message: str) -> OnboardingContext:
        return replace(self, log=(*self.log, message))


@dataclass
class UserDirectory:
    """In-memory user store shared by the onboarding steps."""

    users: dict[str, str] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def create(self, email: str) -> str:
        user_id = f"user_{next(self._ids)}"
        self.users[user_id] = email
        return user_id

    def delete(self, user_id: str) -> None:
        self.users.pop(user_id, None)

    def has_email(self, email: str) -> bool:
        return email in self.users.values()


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class EmailValidationGuard:
    async def check(self, context: OnboardingContext) -> Result:
        if "@" not in context.email or "." not in context.email:
            return Failure(OnboardingError.INVALID_EMAIL)
        return Success()


class PasswordStrengthGuard:
    def __init__(self, min_length: int = 8) -> None:
        self._min_length = min_length

    async def check(self, context: OnboardingContext) -> Result:
        if len(context.password) < self._min_length:
            return Failure(OnboardingError.WEAK_PASSWORD)
        return Success()


class UniqueEmailGuard:
    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    def check(self, context: OnboardingContext) -> Result:
        if self._directory.has_email(context.email):
            return Failure(OnboardingError.USER_ALREADY_EXISTS)
        return Success()


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


class CreateUserStep(BaseStep):
    """Create the user record; compensation deletes it again."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    async def run(self, context: OnboardingContext) -> Result:
        await asyncio.sleep(0)
        user_id = self._directory.create(context.email)
        return Success(replace(context, user_id=user_id).record(f"created {user_id}"))

    async def compensate(self, context: OnboardingContext) -> None:
        if context.user_id is not None:
            logger.info("Rolling back user %s", context.user_id)
            self._directory.delete(context.user_id)


class SendVerificationEmailStep(BaseStep):
    def __init__(self, fail: bool = False) -> None:
        self._fail = fail

    async def run(self, context: OnboardingContext) -> Result:
        await asyncio.sleep(0)
        if self._fail:
            return Failure(OnboardingError.SEND_FAILED)
        return Success(
            replace(context, email_verified=True).record(f"verification sent to {context.email}")
        )


class RecordStep(BaseStep):
    """Step that only appends *message* to the context log."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        self._message = message

    async def run(self, context: OnboardingContext) -> Result:
        return Success(context.record(self._message))


def grant_admin_permissions() -> RecordStep:
    return RecordStep("GrantAdminPermissions", "admin permissions granted")


def setup_user_dashboard() -> RecordStep:
    return RecordStep("SetupUserDashboard", "dashboard set up")


def create_guest_session() -> RecordStep:
    return RecordStep("CreateGuestSession", "guest session created")


def start_premium_trial() -> RecordStep:
    return RecordStep("StartPremiumTrial", "premium trial started")


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


def _base(
    name: str,
    directory: UserDirectory,
    event_emitter: PipelineEventEmitter | None,
) -> Pipeline:
    return (
        Pipeline(name=name, event_emitter=event_emitter)
        .guard(EmailValidationGuard())
        .guard(PasswordStrengthGuard())
        .guard(UniqueEmailGuard(directory))
        .step(CreateUserStep(directory))
    )


def basic_onboarding(
    directory: UserDirectory,
    *,
    fail_send: bool = False,
    event_emitter: PipelineEventEmitter | None = None,
) -> Pipeline:
    """Validate, create the user and send a verification email."""
    return _base("basic-onboarding", directory, event_emitter).step(
        SendVerificationEmailStep(fail=fail_send)
    )


def premium_onboarding(
    directory: UserDirectory,
    *,
    event_emitter: PipelineEventEmitter | None = None,
) -> Pipeline:
    """Basic onboarding with a trial that only premium sign-ups get."""
    return (
        _base("premium-onboarding", directory, event_emitter)
        .branch(lambda ctx: ctx.premium, lambda p: p.step(start_premium_trial()))
        .step(SendVerificationEmailStep())
    )


def onboarding_by_user_type(
    directory: UserDirectory,
    *,
    event_emitter: PipelineEventEmitter | None = None,
) -> Pipeline:
    """Route to role-specific steps; unknown roles pass straight through."""
    return (
        _base("onboarding-by-user-type", directory, event_emitter)
        .switch_on(lambda ctx: ctx.user_type, name="route-user-type")
        .when(
            UserType.ADMIN,
            lambda p: p.step(grant_admin_permissions()).step(SendVerificationEmailStep()),
        )
        .when(
            UserType.USER,
            lambda p: p.step(setup_user_dashboard()).step(SendVerificationEmailStep()),
        )
        .when(UserType.GUEST, lambda p: p.step(create_guest_session()))
        .end()
    )


def _domain(ctx: OnboardingContext) -> str:
    return ctx.email.split("@")[-1]


def onboarding_by_email_domain(
    directory: UserDirectory,
    *,
    event_emitter: PipelineEventEmitter | None = None,
) -> Pipeline:
    """Route on the email domain, falling back to a regular dashboard."""
    return (
        _base("onboarding-by-email-domain", directory, event_emitter)
        .switch_on(_domain, name="route-email-domain")
        .when_match(
            lambda domain: domain.endswith((".gov", ".edu")),
            lambda p: p.step(grant_admin_permissions()),
        )
        .when_match(
            lambda domain: "example" in domain,
            lambda p: p.step(create_guest_session()),
        )
        .otherwise(lambda p: p.step(setup_user_dashboard()))
        .step(SendVerificationEmailStep())
    )


@dataclass(frozen=True)
class Scenario:
    """A named onboarding run used by the ``railyard demo`` command."""

    name: str
    description: str
    build: Callable[..., Pipeline]
    context: OnboardingContext
    options: dict[str, Any] = field(default_factory=dict)

    def pipeline(
        self,
        directory: UserDirectory,
        event_emitter: PipelineEventEmitter | None = None,
    ) -> Pipeline:
        return self.build(directory, event_emitter=event_emitter, **self.options)


SCENARIOS: list[Scenario] = [
    Scenario(
        "basic-success",
        "Valid user is created and verified",
        basic_onboarding,
        OnboardingContext(email="john@example.com", password="SecurePass123!"),
    ),
    Scenario(
        "invalid-email",
        "Email guard stops the pipeline",
        basic_onboarding,
        OnboardingContext(email="invalid-email", password="SecurePass123!"),
    ),
    Scenario(
        "weak-password",
        "Password guard stops the pipeline",
        basic_onboarding,
        OnboardingContext(email="jane@example.com", password="123"),
    ),
    Scenario(
        "send-failure",
        "Sending fails and the created user is rolled back",
        basic_onboarding,
        OnboardingContext(email="kim@example.com", password="SecurePass123!"),
        {"fail_send": True},
    ),
    Scenario(
        "premium-trial",
        "Premium branch starts a trial",
        premium_onboarding,
        OnboardingContext(email="vip@example.com", password="SecurePass123!", premium=True),
    ),
    Scenario(
        "route-admin",
        "Admin case of the user-type switch",
        onboarding_by_user_type,
        OnboardingContext(
            email="admin@example.com", password="AdminPass123!", user_type=UserType.ADMIN
        ),
    ),
    Scenario(
        "route-guest",
        "Guest case of the user-type switch",
        onboarding_by_user_type,
        OnboardingContext(
            email="guest@example.com", password="GuestPass123!", user_type=UserType.GUEST
        ),
    ),
    Scenario(
        "route-gov-domain",
        "Government domain matched by predicate",
        onboarding_by_email_domain,
        OnboardingContext(email="admin@agency.gov", password="GovPass123!"),
    ),
    Scenario(
        "route-fallback-domain",
        "Unmatched domain takes the fallback",
        onboarding_by_email_domain,
        OnboardingContext(email="user@company.io", password="CompanyPass123!"),
    ),
]
