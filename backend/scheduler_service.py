"""
Scheduled tasks for the showroom back office
- Complaint due / overdue notification sweep every NOTIFICATION_SWEEP_MINUTES
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

import config
from services.complaint_notifications import ComplaintNotificationService
from services.errors import ShowroomError
from services.paths import UserType

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Scheduled task manager"""

    def __init__(self, store, sweep_minutes: int = None):
        self.store = store
        self.sweep_minutes = sweep_minutes or config.NOTIFICATION_SWEEP_MINUTES
        self.scheduler = AsyncIOScheduler(timezone=config.APP_TIMEZONE)

    def start(self):
        """Start the scheduler with every job"""
        self.scheduler.add_job(
            self.sweep_complaint_notifications,
            IntervalTrigger(minutes=self.sweep_minutes),
            id="complaint_notification_sweep",
            name="Complaint notification sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info(f"[SCHEDULER] Started (notification sweep every {self.sweep_minutes} min)")

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("[SCHEDULER] Stopped")

    # ==================== JOBS ====================

    async def sweep_complaint_notifications(self):
        """Reconcile complaint notifications for every tenant"""
        results = {}
        for user_type in UserType:
            service = ComplaintNotificationService(self.store, user_type)
            try:
                results[user_type.value] = await service.process_complaint_notifications()
            except ShowroomError as e:
                logger.error(f"[SCHEDULER] Notification sweep failed for {user_type.value}: {e}")
                results[user_type.value] = {"error": str(e)}
        return results
