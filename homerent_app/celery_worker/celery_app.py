from celery import Celery

from core.settings import settings
from tasks.expire_booking_holds import create_booking_hold_expiry_task


class CeleryManager:
    def __init__(self):
        self.REDIS_URL = settings.CELERY_REDIS_URL

        self.app = Celery(
            "homerent_tasks",
            broker=self.REDIS_URL,
            backend=self.REDIS_URL,
        )

        self.app.conf.update(
            task_serializer="json",
            task_track_started=True,
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
            broker_connection_retry=True,
            broker_connection_retry_on_startup=True,
            broker_connection_max_retries=None,
            task_acks_late=False,
            redis_socket_keepalive=True,
            redis_socket_timeout=30,
            result_expires=3600,
            worker_hijack_root_logger=False,
        )
        if self.REDIS_URL.startswith("rediss://"):
            self.app.conf.update(
                broker_use_ssl={"ssl_cert_reqs": "required"},
                redis_backend_use_ssl={"ssl_cert_reqs": "required"},
            )

        BookingHoldExpiryTask = create_booking_hold_expiry_task(self.app)
        self.app.register_task(BookingHoldExpiryTask())

        self.app.conf.beat_schedule = {
            "expire-stale-booking-holds": {
                "task": "expire_stale_booking_holds",
                "schedule": float(settings.EXPIRE_HOLDS_EVERY_SECONDS),
            },
        }


celery_app = CeleryManager()
app = celery_app.app
