# campus_library/tasks/scheduler.py
from __future__ import annotations

import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Inventory audit runs only when LIBRARY_AUDIT_ENABLED is set.
    - Runs the job inside an app context.
    - Skips the debug reloader's secondary process.
    - Shuts the scheduler down with the process.
    """
    if not app.config.get("LIBRARY_AUDIT_ENABLED"):
        app.logger.info("[scheduler] Inventory audit disabled.")
        return None

    # Werkzeug reloader: only the process with WERKZEUG_RUN_MAIN=true is the real one
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # imported here to avoid a cycle through the services package
    from campus_library.tasks.inventory_audit import run_inventory_audit_job

    scheduler = BackgroundScheduler(timezone="UTC")
    minutes = app.config["LIBRARY_AUDIT_INTERVAL_MINUTES"]

    def _job_wrapper():
        try:
            run_inventory_audit_job(app)
        except Exception as ex:
            app.logger.exception(f"[scheduler] inventory_audit_job error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=IntervalTrigger(minutes=minutes),
        id="inventory_audit_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )
    scheduler.start()
    app.logger.info(f"[scheduler] Inventory audit started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler
    atexit.register(_shutdown, app, scheduler)
    return scheduler


def _shutdown(app, scheduler):
    if scheduler.running:
        scheduler.shutdown(wait=False)
        app.logger.info("[scheduler] Scheduler shutdown.")
