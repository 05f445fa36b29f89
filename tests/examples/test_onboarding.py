"""Tests for the bundled onboarding workflows."""

from __future__ import annotations

import pytest

from railyard.examples.onboarding import (
    SCENARIOS,
    OnboardingContext,
    OnboardingError,
    UserDirectory,
    UserType,
    basic_onboarding,
    onboarding_by_email_domain,
    onboarding_by_user_type,
    premium_onboarding,
)
from railyard.pipeline.result import Failure


class TestBasicOnboarding:
    async def test_creates_and_verifies_user(self) -> None:
        directory = UserDirectory()
        result = await basic_onboarding(directory).run(
            OnboardingContext(email="john@example.com", password="SecurePass123!")
        )
        assert result.is_success
        assert result.context.user_id == "user_1"
        assert result.context.email_verified is True
        assert directory.users == {"user_1": "john@example.com"}

    @pytest.mark.parametrize(
        ("email", "password", "error"),
        [
            ("invalid-email", "SecurePass123!", OnboardingError.INVALID_EMAIL),
            ("jane@example.com", "123", OnboardingError.WEAK_PASSWORD),
        ],
    )
    async def test_guards_reject_bad_input(
        self, email: str, password: str, error: OnboardingError
    ) -> None:
        directory = UserDirectory()
        result = await basic_onboarding(directory).run(
            OnboardingContext(email=email, password=password)
        )
        assert result == Failure(error)
        assert directory.users == {}

    async def test_duplicate_email_rejected(self) -> None:
        directory = UserDirectory()
        directory.create("dup@example.com")
        result = await basic_onboarding(directory).run(
            OnboardingContext(email="dup@example.com", password="SecurePass123!")
        )
        assert result == Failure(OnboardingError.USER_ALREADY_EXISTS)

    async def test_send_failure_rolls_back_user(self) -> None:
        directory = UserDirectory()
        result = await basic_onboarding(directory, fail_send=True).run(
            OnboardingContext(email="kim@example.com", password="SecurePass123!")
        )
        assert result == Failure(OnboardingError.SEND_FAILED)
        assert directory.users == {}


class TestRoutedOnboarding:
    async def test_premium_branch(self) -> None:
        pipeline = premium_onboarding(UserDirectory())
        premium = await pipeline.run(
            OnboardingContext(email="vip@example.com", password="SecurePass123!", premium=True)
        )
        regular = await pipeline.run(
            OnboardingContext(email="reg@example.com", password="SecurePass123!")
        )
        assert "premium trial started" in premium.context.log
        assert "premium trial started" not in regular.context.log

    async def test_user_type_switch(self) -> None:
        pipeline = onboarding_by_user_type(UserDirectory())
        admin = await pipeline.run(OnboardingContext(
            email="admin@example.com", password="AdminPass123!", user_type=UserType.ADMIN
        ))
        guest = await pipeline.run(OnboardingContext(
            email="guest@example.com", password="GuestPass123!", user_type=UserType.GUEST
        ))
        untyped = await pipeline.run(OnboardingContext(
            email="none@example.com", password="NonePass123!"
        ))
        assert "admin permissions granted" in admin.context.log
        assert admin.context.email_verified is True
        assert guest.context.log[-1] == "guest session created"
        assert guest.context.email_verified is False
        assert untyped.context.log == ("created user_3",)

    @pytest.mark.parametrize(
        ("email", "expected"),
        [
            ("admin@agency.gov", "admin permissions granted"),
            ("test@example.com", "guest session created"),
            ("user@company.io", "dashboard set up"),
        ],
    )
    async def test_email_domain_switch(self, email: str, expected: str) -> None:
        result = await onboarding_by_email_domain(UserDirectory()).run(
            OnboardingContext(email=email, password="DomainPass123!")
        )
        assert result.context.log[1] == expected
        assert result.context.email_verified is True


class TestScenarios:
    def test_scenario_names_unique(self) -> None:
        names = [scenario.name for scenario in SCENARIOS]
        assert len(names) == len(set(names))

    async def test_every_scenario_runs(self) -> None:
        for scenario in SCENARIOS:
            result = await scenario.pipeline(UserDirectory()).run(scenario.context)
            assert result.is_success or result.is_failure
