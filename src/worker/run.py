"""Licensing worker: reminder scheduler plus health endpoint."""

import asyncio
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from telegram import Bot

from src.config.settings import Settings, load_settings
from src.logging import get_logger, setup_logging
from src.services.email_service import ResendEmailService
from src.services.notification_dispatcher import NotificationDispatcher
from src.services.push_sender import TelegramPushSender
from src.services.reminder_sweeps import ReminderSweeps
from src.services.scheduler import DailyJob, SchedulerService
from src.storage.database import Database
from src.storage.postgres_business_repo import PostgresBusinessRepository
from src.storage.postgres_contract_repo import PostgresContractRepository
from src.storage.postgres_notification_repo import PostgresNotificationRepository
from src.storage.postgres_rent_repo import PostgresRentRepository
from src.storage.postgres_user_repo import PostgresUserRepository
from src.storage.redis_locks import RedisLockHelper
from src.worker.health import start_health_server


class SweepRunners:
    """Builds a fresh set of repositories per sweep run, one session each."""

    def __init__(
        self,
        db: Database,
        push_sender: Optional[TelegramPushSender] = None,
        email_service: Optional[ResendEmailService] = None,
    ):
        self.db = db
        self.push_sender = push_sender
        self.email_service = email_service

    def _sweeps(self, session) -> ReminderSweeps:
        user_repo = PostgresUserRepository(session)
        dispatcher = NotificationDispatcher(
            PostgresNotificationRepository(session), user_repo, self.push_sender
        )
        return ReminderSweeps(
            business_repo=PostgresBusinessRepository(session),
            contract_repo=PostgresContractRepository(session),
            rent_repo=PostgresRentRepository(session),
            user_repo=user_repo,
            dispatcher=dispatcher,
            email_service=self.email_service,
        )

    async def contract_sweep(self, now: datetime) -> dict[str, int]:
        async with self.db.session() as session:
            return await self._sweeps(session).run_contract_sweep(now)

    async def rent_sweep(self, now: datetime) -> dict[str, int]:
        async with self.db.session() as session:
            return await self._sweeps(session).run_rent_sweep(now.date())


def build_scheduler(settings: Settings, runners: SweepRunners) -> SchedulerService:
    """Daily contract and rent sweeps at their configured wall-clock times."""
    return SchedulerService(
        jobs=[
            DailyJob("contract_sweep", settings.contract_sweep_time, runners.contract_sweep),
            DailyJob("rent_sweep", settings.rent_sweep_time, runners.rent_sweep),
        ]
    )


async def main() -> None:
    """Connect dependencies, start the scheduler and health server, run until stopped."""
    settings = load_settings()
    setup_logging(settings.log_level)
    logger = get_logger(__name__)

    logger.info("Starting licensing worker", environment=settings.environment)

    db = Database(settings)
    await db.connect()

    redis_locks = RedisLockHelper(settings.redis_url, ttl_seconds=settings.redis_lock_ttl_seconds)
    await redis_locks.connect()

    push_sender = None
    if settings.push_enabled:
        push_sender = TelegramPushSender(Bot(settings.telegram_bot_token))

    email_service = None
    if settings.resend_api_key:
        email_service = ResendEmailService(settings.resend_api_key, settings.resend_from_email)

    scheduler = build_scheduler(settings, SweepRunners(db, push_sender, email_service))

    health_server = start_health_server(
        host=settings.health_host,
        port=settings.health_port,
        db_ping=db.ping,
        redis_ping=redis_locks.ping,
        loop=asyncio.get_running_loop(),
    )
    health_thread = threading.Thread(target=health_server.serve_forever, daemon=True)
    health_thread.start()

    scheduler_task = asyncio.create_task(scheduler.start())

    logger.info("Worker initialization complete")

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down worker")
    finally:
        await scheduler.stop()
        scheduler_task.cancel()
        health_server.shutdown()
        if email_service is not None:
            await email_service.close()
        await redis_locks.disconnect()
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
