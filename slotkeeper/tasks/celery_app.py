# slotkeeper/tasks/celery_app.py
"""
Celery application configuration for Slotkeeper.

Redis is the broker and result backend. The beat schedule drives the slot
sweep, booking reminders and the evening agenda summary; the write listeners
enqueue invalidation and notification tasks on the same app.
"""

from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from slotkeeper.core.config import settings

TASK_MODULES = (
    "slotkeeper.tasks.availability_tasks",
    "slotkeeper.tasks.notification_tasks",
)


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.broker_url
    result_backend = settings.celery_result_backend or broker_url

    celery_app = Celery(
        "slotkeeper",
        broker=broker_url,
        backend=result_backend,
    )

    base_config = {
        # Task settings
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": settings.business_timezone,
        "enable_utc": True,
        # Worker settings
        "worker_prefetch_multiplier": 4,
        "worker_max_tasks_per_child": 1000,
        # Scheduled runs are bounded; the hard limit leaves room for cleanup
        "task_soft_time_limit": settings.scheduled_run_time_limit_seconds,
        "task_time_limit": settings.scheduled_run_time_limit_seconds * 2,
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "task_default_retry_delay": 60,
        "worker_hijack_root_logger": False,
        "worker_redirect_stdouts": True,
        "worker_redirect_stdouts_level": "INFO",
        "broker_transport_options": {
            "visibility_timeout": 3600,
            "polling_interval": 10.0,
        },
    }
    if settings.is_production:
        base_config.update(
            {
                "worker_prefetch_multiplier": 1,
                "worker_max_tasks_per_child": 100,
                "result_expires": 900,
            }
        )

    celery_app.conf.update(base_config)

    # Register task modules explicitly so beat-triggered names always resolve
    celery_app.conf.imports = tuple(set(celery_app.conf.imports or ()) | set(TASK_MODULES))

    celery_app.conf.task_routes = {
        "availability.*": {"queue": "availability"},
        "notifications.*": {"queue": "notifications"},
    }

    from slotkeeper.tasks.beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule(settings.environment)

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    import logging

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task with failure, retry and success logging."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        import logging

        logger = logging.getLogger(__name__)
        logger.error(
            f"Task {self.name}[{task_id}] failed: {exc}",
            exc_info=einfo,
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "task_args": str(args),
                "task_kwargs": str(kwargs),
            },
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        import logging

        logger = logging.getLogger(__name__)
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={"task_id": task_id, "task_name": self.name, "retry_count": self.request.retries},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        import logging

        logger = logging.getLogger(__name__)
        logger.info(
            f"Task {self.name}[{task_id}] completed successfully",
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_success(retval, task_id, args, kwargs)


celery_app.Task = cast(Type[Task], BaseTask)


def task_result(summary: Any) -> Dict[str, Any]:
    """JSON-safe task return value for a run summary."""
    return cast(Dict[str, Any], summary.to_dict())
