from datetime import timedelta
import logging

from sqlalchemy.exc import SQLAlchemyError

from precast.db.models.project import UserSession
from precast.maintenance.context import CycleContext
from precast.maintenance.exceptions import CycleCancelled

logger = logging.getLogger(__name__)

JOB_NAME = "CleanupExpiredSessions"

# Sessions are kept for a day after expiry so in-flight requests can still resolve them
EXPIRED_SESSION_RETENTION = timedelta(hours=24)


def cleanup_expired_sessions(ctx: CycleContext, session_factory) -> dict:
    cutoff = ctx.now - EXPIRED_SESSION_RETENTION
    db = session_factory()
    try:
        ctx.check()
        deleted = (
            db.query(UserSession)
            .filter(UserSession.expires_at < cutoff)
            .delete(synchronize_session=False)
        )
        ctx.check()
        db.commit()
        logger.info(f"[{JOB_NAME}] deleted {deleted} session(s) expired before {cutoff}")
        return {"deleted": deleted}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{JOB_NAME}] error deleting expired sessions: {e}")
        raise
    except CycleCancelled:
        db.rollback()
        raise
    finally:
        db.close()
