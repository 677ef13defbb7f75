"""
app/scheduler/jobs.py

APScheduler wiring for the organization onboarding lane.

Lifecycle
----------
Call ``build_scheduler()`` once, then ``build_work_dispatcher()`` to register
the onboarding queue on it. Start the scheduler on app boot and shut it down
gracefully on app shutdown; both happen in the FastAPI ``lifespan`` context
in main.py.

Each queue is an APScheduler executor alias, so onboarding tasks run on
their own thread pool. Retries are one-off ``date`` jobs scheduled by the
dispatcher with the configured backoff.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import OnboardingSettings, get_onboarding_settings
from app.scheduler.dispatcher import RetryPolicy, SchedulerWorkDispatcher
from app.services.onboarding_action import OnboardingAction, load_onboarding_action
from app.services.onboarding_worker import OrganizationOnboardingWorker

logger = logging.getLogger(__name__)


def build_scheduler() -> BackgroundScheduler:
    """
    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """

    return BackgroundScheduler(
        timezone="UTC",
        job_defaults={"coalesce": False, "max_instances": 1},
    )


def build_retry_policy(settings: OnboardingSettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff_seconds=settings.backoff_seconds,
        timeout_seconds=settings.timeout_seconds,
    )


def build_work_dispatcher(
    scheduler: BackgroundScheduler,
    *,
    settings: OnboardingSettings | None = None,
    session_factory: Callable[[], Session] | None = None,
    action: OnboardingAction | None = None,
) -> SchedulerWorkDispatcher:
    """
    Create the dispatcher and register the onboarding queue on ``scheduler``.
    """

    settings = settings or get_onboarding_settings()
    worker = OrganizationOnboardingWorker(
        session_factory=session_factory,
        action=action or load_onboarding_action(settings.action_path),
        max_attempts=settings.max_attempts,
    )

    dispatcher = SchedulerWorkDispatcher(scheduler)
    dispatcher.register_queue(
        settings.queue_name,
        handler=worker,
        policy=build_retry_policy(settings),
        concurrency=settings.worker_concurrency,
    )
    logger.info(
        "Onboarding queue ready queue=%s max_attempts=%s backoff=%s timeout=%ss",
        settings.queue_name,
        settings.max_attempts,
        ",".join(f"{delay:g}" for delay in settings.backoff_seconds),
        settings.timeout_seconds,
    )
    return dispatcher
