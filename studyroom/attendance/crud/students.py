from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyroom.core.database import db_operation
from studyroom.core.exceptions import NotFoundError
from studyroom.attendance.models.students import Student


@db_operation
async def get_student(session: AsyncSession, tenant_id: int, student_id: int) -> Student:
    result = await session.execute(
        select(Student).where(
            and_(Student.id == student_id, Student.tenant_id == tenant_id)
        )
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError("Student", str(student_id))
    return student
