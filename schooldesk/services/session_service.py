# schooldesk/services/session_service.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from schooldesk.core.logging import logger
from schooldesk.models.sessions import AcademicSession
from .base_service import BaseService


class SessionService(BaseService):
    async def resolve_session(
        self,
        tenant_id: Optional[int],
        requested_id: Optional[str] = None
    ) -> Optional[AcademicSession]:
        """
        Pick the academic session a request works in.

        An explicit X-Session-ID wins when it belongs to the tenant, otherwise
        the tenant's current session is used. Failures resolve to no session.
        """
        if tenant_id is None:
            return None

        try:
            if requested_id:
                try:
                    session_id = int(requested_id)
                except ValueError:
                    logger.warning(f"Ignoring malformed session id: {requested_id!r}")
                else:
                    result = await self.db.execute(
                        select(AcademicSession).where(
                            AcademicSession.id == session_id,
                            AcademicSession.tenant_id == tenant_id
                        )
                    )
                    session = result.scalar_one_or_none()
                    if session is not None:
                        return session
                    logger.warning(f"Session {session_id} not found for tenant {tenant_id}")

            result = await self.db.execute(
                select(AcademicSession)
                .where(
                    AcademicSession.tenant_id == tenant_id,
                    AcademicSession.is_current.is_(True)
                )
                .order_by(AcademicSession.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Session context lookup failed: {str(e)}", extra={"tenant_id": tenant_id})
            return None
