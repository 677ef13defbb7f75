"""
app/services/onboarding_action.py

Pluggable onboarding action invoked by the onboarding worker.

The worker treats the action as opaque: returning means success, raising
means failure and the exception message becomes the organization's
``failed_reason``. The default action does nothing.

A custom action is configured with ``ONBOARDING_ACTION=package.module:attr``
where ``attr`` is an object with ``perform(organization)``, a class whose
instances have it, or a plain callable taking the organization snapshot.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import Any, Protocol

from app.domain.onboarding import OrganizationSnapshot

logger = logging.getLogger(__name__)


class OnboardingActionConfigError(ValueError):
    """Raised when ONBOARDING_ACTION cannot be resolved to an action."""


class OnboardingAction(Protocol):
    def perform(self, organization: OrganizationSnapshot) -> None:
        ...


class NoOpOnboardingAction:
    """
    Placeholder for real onboarding work (welcome emails, provisioning, ...).
    """

    def perform(self, organization: OrganizationSnapshot) -> None:
        logger.debug(
            "No-op onboarding action organization_id=%s domain=%s",
            organization.id,
            organization.domain,
        )


class CallableOnboardingAction:
    def __init__(self, func: Callable[[OrganizationSnapshot], Any]) -> None:
        self._func = func

    def perform(self, organization: OrganizationSnapshot) -> None:
        self._func(organization)


def load_onboarding_action(path: str | None) -> OnboardingAction:
    """
    Resolve ``module:attr`` into an onboarding action; None means no-op.
    """

    if not path:
        return NoOpOnboardingAction()

    module_name, sep, attr_name = path.partition(":")
    if not sep or not module_name or not attr_name:
        raise OnboardingActionConfigError(
            f"ONBOARDING_ACTION must look like 'package.module:attr', got {path!r}"
        )

    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr_name)
    except (ImportError, AttributeError) as exc:
        raise OnboardingActionConfigError(f"Cannot load onboarding action {path!r}: {exc}") from exc

    if isinstance(target, type):
        target = target()
    if hasattr(target, "perform"):
        return target
    if callable(target):
        return CallableOnboardingAction(target)
    raise OnboardingActionConfigError(f"Onboarding action {path!r} is neither callable nor has perform()")
