# email_tracking/tasks.py
from datetime import date
import logging

from background_task import background

from .rollup import run_daily_rollup

logger = logging.getLogger(__name__)


@background(schedule=0)
def daily_email_analytics_rollup(day=None):
    """
    Background task running the deliverability rollup.

    Args:
        day: ISO date string to roll up; yesterday when omitted
    """
    target = date.fromisoformat(day) if day else None
    try:
        summary = run_daily_rollup(target)
    except Exception as e:
        logger.error(f"Daily email analytics rollup failed for {day or 'yesterday'}: {str(e)}", exc_info=True)
        raise

    if summary["failed"]:
        logger.warning(f"Rollup for {summary['date']} skipped domains: {', '.join(summary['failed'])}")
    return summary
