"""
Prometheus metrics endpoint
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from innet.core.database import get_db
from innet.core.errors import StoreUnavailableError
from innet.core.logging_config import LoggingConfig
from innet.core.metrics import get_metrics, get_metrics_content_type, share_links_stored
from innet.services.alias_store import SqlAlchemyAliasStore
from innet.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(tags=["metrics"])


def refresh_share_link_gauges(db: Session) -> None:
    """Set the stored short link gauges from the table; the previous values stay if it is unavailable"""
    try:
        counts = SqlAlchemyAliasStore(db).count_by_state(utc_now())
    except StoreUnavailableError as e:
        logger.warning(f"Short link counts unavailable: {e}", extra={"operation": e.operation})
        return
    for state, value in counts.items():
        share_links_stored.labels(state=state).set(value)


@router.get("/metrics")
async def metrics(db: Session = Depends(get_db)):
    """
    Prometheus metrics endpoint

    Returns metrics in Prometheus text format, with the stored short link
    gauges refreshed first
    """
    refresh_share_link_gauges(db)
    try:
        return Response(
            content=get_metrics(),
            media_type=get_metrics_content_type()
        )
    except Exception as e:
        logger.error(f"Error generating metrics: {e}", exc_info=True)
        return Response(
            content="# Error generating metrics\n",
            media_type="text/plain",
            status_code=500
        )
