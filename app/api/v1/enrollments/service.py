import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.classes.service import count_active_enrollments, get_class_or_404, is_at_capacity
from app.auth.rbac import has_role
from app.core.enums import EnrollmentStatus, RoleName
from app.core.exceptions import ClassFull, DuplicateEnrollment, InvalidRole, InvalidState, NotFound
from app.core.models import (
    AcademicYear,
    Assessment,
    AssessmentAssignment,
    ClassSubject,
    Enrollment,
    SchoolClass,
    User,
)

from .schemas import EnrollmentResponse

logger = logging.getLogger(__name__)

ACTIVE = EnrollmentStatus.ACTIVE.value
WITHDRAWN = EnrollmentStatus.WITHDRAWN.value


def _to_response(e: Enrollment) -> EnrollmentResponse:
    # school_class and student are eager-loaded by every query in this module
    school_class = e.school_class
    student = e.student
    return EnrollmentResponse(
        id=e.id,
        class_id=e.class_id,
        student_id=e.student_id,
        status=e.status,
        enrolled_at=e.enrolled_at,
        withdrawn_at=e.withdrawn_at,
        academic_year_id=school_class.academic_year_id if school_class is not None else None,
        class_name=school_class.name if school_class is not None else None,
        student_name=student.full_name if student is not None else None,
    )


async def _load(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.id == enrollment_id)
        .options(selectinload(Enrollment.school_class), selectinload(Enrollment.student))
        .execution_options(populate_existing=True)
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Enrollment not found")
    return obj


async def _get_student(db: AsyncSession, student_id: UUID) -> User:
    student = await db.get(User, student_id)
    if not student:
        raise NotFound("Student not found")
    return student


async def _has_active_enrollment_in_year(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: UUID,
    exclude_enrollment_id: Optional[UUID] = None,
) -> bool:
    stmt = (
        select(func.count(Enrollment.id))
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .where(
            Enrollment.student_id == student_id,
            Enrollment.status == ACTIVE,
            SchoolClass.academic_year_id == academic_year_id,
        )
    )
    if exclude_enrollment_id is not None:
        stmt = stmt.where(Enrollment.id != exclude_enrollment_id)
    return bool(await db.scalar(stmt))


async def _validate_placement(
    db: AsyncSession,
    student: User,
    school_class: SchoolClass,
    exclude_enrollment_id: Optional[UUID] = None,
) -> None:
    """Role, one-active-per-year and capacity checks shared by enroll, transfer and reactivate."""
    if not has_role(student, RoleName.STUDENT):
        raise InvalidRole("User does not have the student role")
    if await _has_active_enrollment_in_year(db, student.id, school_class.academic_year_id, exclude_enrollment_id):
        raise DuplicateEnrollment("Student is already actively enrolled in this academic year")
    if is_at_capacity(school_class, await count_active_enrollments(db, school_class.id)):
        raise ClassFull(f"Class '{school_class.name}' is full")


async def enroll(db: AsyncSession, student_id: UUID, class_id: UUID) -> EnrollmentResponse:
    student = await _get_student(db, student_id)
    school_class = await get_class_or_404(db, class_id, for_update=True)
    await _validate_placement(db, student, school_class)
    obj = Enrollment(
        class_id=school_class.id,
        student_id=student.id,
        status=ACTIVE,
        enrolled_at=datetime.utcnow(),
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEnrollment("Enrollment conflict")
    logger.info("Student %s enrolled in class %s", student.id, school_class.name)
    return _to_response(await _load(db, obj.id))


async def transfer(db: AsyncSession, enrollment_id: UUID, new_class_id: UUID) -> EnrollmentResponse:
    """Withdraw the enrollment and open a new one in new_class_id. Both rows change in one commit."""
    enrollment = await _load(db, enrollment_id)
    if enrollment.status != ACTIVE:
        raise InvalidState("Only an active enrollment can be transferred")
    if enrollment.class_id == new_class_id:
        raise DuplicateEnrollment("Student is already enrolled in the target class")
    student = await _get_student(db, enrollment.student_id)
    new_class = await get_class_or_404(db, new_class_id, for_update=True)
    await _validate_placement(db, student, new_class, exclude_enrollment_id=enrollment.id)

    now = datetime.utcnow()
    enrollment.status = WITHDRAWN
    enrollment.withdrawn_at = now
    new_enrollment = Enrollment(
        class_id=new_class.id,
        student_id=student.id,
        status=ACTIVE,
        enrolled_at=now,
    )
    db.add(new_enrollment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEnrollment("Enrollment conflict during transfer")
    logger.info("Student %s transferred from class %s to class %s", student.id, enrollment.class_id, new_class.name)
    return _to_response(await _load(db, new_enrollment.id))


async def withdraw(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    enrollment = await _load(db, enrollment_id)
    enrollment.status = WITHDRAWN
    enrollment.withdrawn_at = datetime.utcnow()
    await db.commit()
    logger.info("Enrollment %s withdrawn", enrollment.id)
    return _to_response(await _load(db, enrollment_id))


async def reactivate(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    enrollment = await _load(db, enrollment_id)
    if enrollment.status != WITHDRAWN:
        raise InvalidState(f"Cannot reactivate an enrollment with status '{enrollment.status}'")
    school_class = await get_class_or_404(db, enrollment.class_id, for_update=True)
    if is_at_capacity(school_class, await count_active_enrollments(db, school_class.id)):
        raise ClassFull(f"Class '{school_class.name}' is full")
    if await _has_active_enrollment_in_year(db, enrollment.student_id, school_class.academic_year_id):
        raise DuplicateEnrollment("Student is already actively enrolled in this academic year")
    enrollment.status = ACTIVE
    enrollment.withdrawn_at = None
    await db.commit()
    logger.info("Enrollment %s reactivated", enrollment.id)
    return _to_response(await _load(db, enrollment_id))


async def find_active_enrollment(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> Optional[Enrollment]:
    """Active enrollment of the student in the given year, or in the current year when omitted."""
    stmt = (
        select(Enrollment)
        .join(SchoolClass, SchoolClass.id == Enrollment.class_id)
        .where(Enrollment.student_id == student_id, Enrollment.status == ACTIVE)
        .options(selectinload(Enrollment.school_class), selectinload(Enrollment.student))
    )
    if academic_year_id is not None:
        stmt = stmt.where(SchoolClass.academic_year_id == academic_year_id)
    else:
        stmt = stmt.join(AcademicYear, AcademicYear.id == SchoolClass.academic_year_id).where(
            AcademicYear.is_current.is_(True)
        )
    result = await db.execute(stmt)
    return result.scalars().first()


async def active_enrollment_for(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> Optional[EnrollmentResponse]:
    obj = await find_active_enrollment(db, student_id, academic_year_id)
    return _to_response(obj) if obj else None


async def get_enrollment(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    return _to_response(await _load(db, enrollment_id))


async def list_class_enrollments(
    db: AsyncSession,
    class_id: UUID,
    status: Optional[EnrollmentStatus] = None,
) -> List[EnrollmentResponse]:
    await get_class_or_404(db, class_id)
    stmt = (
        select(Enrollment)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .options(selectinload(Enrollment.school_class), selectinload(Enrollment.student))
    )
    if status is not None:
        stmt = stmt.where(Enrollment.status == status.value)
    result = await db.execute(stmt.order_by(User.full_name, Enrollment.enrolled_at))
    return [_to_response(e) for e in result.scalars().all()]


async def delete_enrollment(db: AsyncSession, enrollment_id: UUID) -> None:
    """Hard delete, refused once the student has assessment work in that class."""
    enrollment = await _load(db, enrollment_id)
    assignments = await db.scalar(
        select(func.count(AssessmentAssignment.id))
        .join(Assessment, Assessment.id == AssessmentAssignment.assessment_id)
        .join(ClassSubject, ClassSubject.id == Assessment.class_subject_id)
        .where(
            ClassSubject.class_id == enrollment.class_id,
            AssessmentAssignment.student_id == enrollment.student_id,
        )
    )
    if assignments:
        raise InvalidState("Cannot delete an enrollment with assessment assignments")
    await db.delete(enrollment)
    await db.commit()
    logger.info("Enrollment %s deleted", enrollment_id)
