import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.challenge import Enrollment, EnrollmentStatus


class EnrollmentOperations:
    """Reads and status changes for (user, challenge) enrollments."""

    async def get(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
    ) -> Enrollment | None:
        statement = select(Enrollment).where(
            Enrollment.user_id == user_id,  # type: ignore[arg-type]
            Enrollment.challenge_id == challenge_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def set_status(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
        status: EnrollmentStatus,
    ) -> Enrollment:
        """Create or update an enrollment with the given status."""
        enrollment = await self.get(db, user_id, challenge_id)
        if enrollment is None:
            enrollment = Enrollment(user_id=user_id, challenge_id=challenge_id)
        enrollment.status = status.value
        db.add(enrollment)
        await db.flush()
        await db.refresh(enrollment)
        return enrollment


enrollment_ops = EnrollmentOperations()
