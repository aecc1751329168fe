from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Holds the request's AsyncSession shared by the repositories a service uses.

    Repositories flush; the service commits once its unit of work is complete.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
