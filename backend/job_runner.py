"""
Shared job runner for scheduled background jobs.
Used by server (scheduler) and admin (manual run).
Each run_* returns a dict with "message" and "count".
"""
import logging

logger = logging.getLogger(__name__)


async def run_expired_results_cleanup():
    """Delete pending results and payment tokens past their 24h expiry."""
    try:
        from services.pending_result_service import delete_expired
        deleted = await delete_expired()
        count = deleted["pending_results"] + deleted["payment_tokens"]
        logger.info(
            f"Expired results cleanup completed: {deleted['pending_results']} results, "
            f"{deleted['payment_tokens']} tokens"
        )
        return {"message": f"Expired records deleted: {count}", "count": count}
    except Exception as e:
        logger.error(f"Expired results cleanup failed: {e}")
        raise


async def run_abandoned_checkout_cleanup():
    """Cancel orders whose checkout never completed within 24h."""
    try:
        from services.order_service import cancel_abandoned_orders
        count = await cancel_abandoned_orders(older_than_hours=24)
        logger.info(f"Abandoned checkout cleanup completed: {count} orders canceled")
        return {"message": f"Abandoned orders canceled: {count}", "count": count}
    except Exception as e:
        logger.error(f"Abandoned checkout cleanup failed: {e}")
        raise


JOB_RUNNERS = {
    "expired_results_cleanup": run_expired_results_cleanup,
    "abandoned_checkout_cleanup": run_abandoned_checkout_cleanup,
}
