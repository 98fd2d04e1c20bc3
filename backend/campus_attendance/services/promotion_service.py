# backend/campus_attendance/services/promotion_service.py
"""Promotion decision engine and its executors.

Decision table, evaluated on one academic year's enrollments:
    no failed subjects                       -> PROMOTED
    failed <= max_carry_subjects and carry ok -> PROMOTED_WITH_CARRY
    otherwise                                -> REPEAT_YEAR

Failed means FAILED or BLOCKED_BY_ABSENCE.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from campus_attendance import db
from campus_attendance.models.academic import Department, Material, Stage
from campus_attendance.models.accounts import AcademicStatus, Student
from campus_attendance.models.enrollment import (
    CarriedSubject, Enrollment, FAILING_RESULTS, ResultStatus
)
from campus_attendance.models.promotion import (
    PromotionConfig, PromotionDecision, PromotionLock, PromotionRecord, RepeatMode
)
from campus_attendance.utils.errors import ConflictError, NotFoundError, ValidationError
from campus_attendance.utils.helpers import utcnow
from campus_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

PROMOTION_LOCK_NAME = 'promotion'
REPEAT_MODES = (RepeatMode.FAILED_ONLY, RepeatMode.FULL_YEAR)

@dataclass(frozen=True)
class PromotionPolicy:
    """Effective promotion rules of a department."""
    max_carry_subjects: int = 2
    fail_threshold_for_repeat: int = 3
    disable_carry_for_final_year: bool = False
    block_carry_for_core: bool = False
    repeat_mode: str = RepeatMode.FAILED_ONLY

    def to_dict(self) -> Dict:
        return asdict(self)

@dataclass(frozen=True)
class SubjectRef:
    id: int
    name: str
    is_core_subject: bool = False

@dataclass
class StudentDecision:
    """Outcome of evaluating one student; nothing is written."""
    student_id: int
    student_name: str
    student_number: str
    current_stage: Optional[str]
    current_stage_id: Optional[int]
    decision: PromotionDecision
    failed_count: int
    carried_count: int
    failed_subjects: List[SubjectRef] = field(default_factory=list)
    carried_subjects: List[SubjectRef] = field(default_factory=list)
    next_stage: Optional[str] = None
    next_stage_id: Optional[int] = None
    department_id: Optional[int] = None

    def to_dict(self) -> Dict:
        def subjects(refs):
            return [{'id': str(ref.id), 'name': ref.name} for ref in refs]

        return {
            'student_id': str(self.student_id),
            'student_name': self.student_name,
            'student_number': self.student_number,
            'current_stage': self.current_stage,
            'current_stage_id': str(self.current_stage_id) if self.current_stage_id else None,
            'decision': self.decision.value,
            'failed_count': self.failed_count,
            'carried_count': self.carried_count,
            'failed_subjects': subjects(self.failed_subjects),
            'carried_subjects': subjects(self.carried_subjects),
            'next_stage': self.next_stage,
            'next_stage_id': str(self.next_stage_id) if self.next_stage_id else None,
        }

class PromotionService:
    """Service for promotion operations."""

    # =================== CONFIG ===================

    @staticmethod
    def get_promotion_config(department_id: int) -> PromotionPolicy:
        """Department policy, or the configured defaults when it has none."""
        config = PromotionConfig.query.filter_by(department_id=department_id).first()
        if config is None:
            return PromotionPolicy(**current_app.config['PROMOTION_DEFAULTS'])

        return PromotionPolicy(
            max_carry_subjects=config.max_carry_subjects,
            fail_threshold_for_repeat=config.fail_threshold_for_repeat,
            disable_carry_for_final_year=config.disable_carry_for_final_year,
            block_carry_for_core=config.block_carry_for_core,
            repeat_mode=config.repeat_mode
        )

    @staticmethod
    def upsert_promotion_config(department_id: int, data: Dict) -> PromotionPolicy:
        """Create or replace a department's policy; omitted keys take the defaults."""
        if db.session.get(Department, department_id) is None:
            raise NotFoundError("Department not found")

        values = dict(current_app.config['PROMOTION_DEFAULTS'])
        for key in ('max_carry_subjects', 'fail_threshold_for_repeat'):
            if data.get(key) is not None:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ValidationError(f"{key} must be a non-negative integer")
                values[key] = value
        for key in ('disable_carry_for_final_year', 'block_carry_for_core'):
            if data.get(key) is not None:
                if not isinstance(data[key], bool):
                    raise ValidationError(f"{key} must be a boolean")
                values[key] = data[key]
        if data.get('repeat_mode') is not None:
            if data['repeat_mode'] not in REPEAT_MODES:
                raise ValidationError(f"repeat_mode must be one of: {', '.join(REPEAT_MODES)}")
            values['repeat_mode'] = data['repeat_mode']

        config = PromotionConfig.query.filter_by(department_id=department_id).first()
        if config is None:
            config = PromotionConfig(department_id=department_id)
            db.session.add(config)
        for key, value in values.items():
            setattr(config, key, value)
        db.session.commit()

        logger.info("Promotion config of department %s set to %s", department_id, values)
        return PromotionPolicy(**values)

    # =================== DECISION ===================

    @staticmethod
    def get_failed_subjects(enrollments: List[Enrollment]) -> List[Enrollment]:
        return [e for e in enrollments if e.result_status in FAILING_RESULTS]

    @staticmethod
    def can_carry_subjects(failed_subjects: List[Enrollment], policy: PromotionPolicy,
                           is_final_year: bool) -> bool:
        if is_final_year and policy.disable_carry_for_final_year:
            return False
        if policy.block_carry_for_core and any(e.material.is_core_subject for e in failed_subjects):
            return False
        return True

    @staticmethod
    def calculate_student_decision(student: Student, enrollments: List[Enrollment],
                                   policy: PromotionPolicy, next_stage: Optional[Stage],
                                   current_stage: Optional[Stage]) -> StudentDecision:
        """Pure decision for one student: same inputs, same result."""
        failed = PromotionService.get_failed_subjects(enrollments)
        failed_count = len(failed)
        carried: List[Enrollment] = []
        target_stage = next_stage

        if failed_count == 0:
            decision = PromotionDecision.PROMOTED
        elif failed_count <= policy.max_carry_subjects and \
                PromotionService.can_carry_subjects(failed, policy, next_stage is None):
            decision = PromotionDecision.PROMOTED_WITH_CARRY
            carried = failed
        else:
            decision = PromotionDecision.REPEAT_YEAR
            target_stage = current_stage

        def refs(items):
            return [SubjectRef(e.material_id, e.material.name, e.material.is_core_subject)
                    for e in items]

        return StudentDecision(
            student_id=student.id,
            student_name=student.name,
            student_number=student.student_number,
            current_stage=current_stage.name if current_stage else None,
            current_stage_id=student.stage_id,
            decision=decision,
            failed_count=failed_count,
            carried_count=len(carried),
            failed_subjects=refs(failed),
            carried_subjects=refs(carried),
            next_stage=target_stage.name if target_stage else None,
            next_stage_id=target_stage.id if target_stage else None,
            department_id=student.department_id
        )

    @staticmethod
    def get_promotion_preview(department_id: int, stage_id: int,
                              academic_year: str) -> List[StudentDecision]:
        """Decisions for a department and stage cohort without executing them."""
        academic_year = Validator.validate_academic_year(academic_year)
        current_stage = db.session.get(Stage, stage_id)
        if current_stage is None:
            raise NotFoundError("Stage not found")

        policy = PromotionService.get_promotion_config(department_id)
        next_stage = Stage.next_after(current_stage)

        students = Student.query.filter_by(department_id=department_id, stage_id=stage_id) \
            .order_by(Student.id).all()

        return [
            PromotionService.calculate_student_decision(
                student, PromotionService._year_enrollments(student.id, academic_year),
                policy, next_stage, current_stage
            )
            for student in students
        ]

    @staticmethod
    def get_all_eligible_students(academic_year: str) -> List[Dict]:
        """Decisions for every student enrolled in the year, across departments."""
        academic_year = Validator.validate_academic_year(academic_year)

        students = Student.query.options(joinedload(Student.stage), joinedload(Student.department)) \
            .filter(Student.enrollments.any(Enrollment.academic_year == academic_year)) \
            .order_by(Student.id).all()

        policies: Dict[int, PromotionPolicy] = {}
        next_stages: Dict[int, Optional[Stage]] = {}
        results = []

        for student in students:
            if not student.has_placement():
                logger.info("Skipping student %s without department or stage", student.id)
                continue

            if student.department_id not in policies:
                policies[student.department_id] = PromotionService.get_promotion_config(student.department_id)
            if student.stage_id not in next_stages:
                next_stages[student.stage_id] = Stage.next_after(student.stage)

            decision = PromotionService.calculate_student_decision(
                student, PromotionService._year_enrollments(student.id, academic_year),
                policies[student.department_id], next_stages[student.stage_id], student.stage
            )
            data = decision.to_dict()
            data['department_id'] = str(student.department_id)
            data['department_name'] = student.department.name if student.department else None
            results.append(data)

        return results

    # =================== EXECUTORS ===================

    @staticmethod
    def promote_student(decision: StudentDecision, from_year: str, to_year: str,
                        processed_by: str) -> PromotionRecord:
        """Move to the next stage as REGULAR and enroll in its materials."""
        def work(student):
            student.stage_id = decision.next_stage_id
            student.academic_status = AcademicStatus.REGULAR
            student.academic_year = to_year
            record = PromotionService._record(decision, PromotionDecision.PROMOTED,
                                              from_year, to_year, processed_by,
                                              stage_to_id=decision.next_stage_id)
            PromotionService._enroll_stage(student, decision.next_stage_id, to_year)
            return record

        return PromotionService._atomic(decision.student_id, work)

    @staticmethod
    def carry_student(decision: StudentDecision, from_year: str, to_year: str,
                      processed_by: str) -> PromotionRecord:
        """Move to the next stage as CARRYING, re-enrolling the carried subjects."""
        def work(student):
            student.stage_id = decision.next_stage_id
            student.academic_status = AcademicStatus.CARRYING
            student.academic_year = to_year
            record = PromotionService._record(decision, PromotionDecision.PROMOTED_WITH_CARRY,
                                              from_year, to_year, processed_by,
                                              stage_to_id=decision.next_stage_id)
            for subject in decision.carried_subjects:
                db.session.add(CarriedSubject(
                    student_id=student.id, material_id=subject.id, academic_year=to_year
                ))
            PromotionService._enroll_stage(student, decision.next_stage_id, to_year)
            for subject in decision.carried_subjects:
                PromotionService._enroll(student.id, subject.id, to_year, is_carried=True)
            return record

        return PromotionService._atomic(decision.student_id, work)

    @staticmethod
    def repeat_student(decision: StudentDecision, from_year: str, to_year: str,
                       processed_by: str) -> PromotionRecord:
        """Stay in the current stage as REPEATING."""
        def work(student):
            student.academic_status = AcademicStatus.REPEATING
            student.academic_year = to_year
            record = PromotionService._record(decision, PromotionDecision.REPEAT_YEAR,
                                              from_year, to_year, processed_by,
                                              stage_to_id=decision.current_stage_id,
                                              carried_count=0)
            policy = PromotionService.get_promotion_config(student.department_id)
            if policy.repeat_mode == RepeatMode.FULL_YEAR:
                PromotionService._enroll_stage(student, decision.current_stage_id, to_year)
            else:
                for subject in decision.failed_subjects:
                    PromotionService._enroll(student.id, subject.id, to_year)
            return record

        return PromotionService._atomic(decision.student_id, work)

    EXECUTORS = {
        PromotionDecision.PROMOTED: 'promote_student',
        PromotionDecision.PROMOTED_WITH_CARRY: 'carry_student',
        PromotionDecision.REPEAT_YEAR: 'repeat_student',
    }

    @staticmethod
    def execute_decision(decision: StudentDecision, from_year: str, to_year: str,
                         processed_by: str) -> PromotionRecord:
        executor = getattr(PromotionService, PromotionService.EXECUTORS[decision.decision])
        return executor(decision, from_year, to_year, processed_by)

    # =================== BATCHES ===================

    @staticmethod
    def process_promotion(department_id: int, stage_id: int, from_year: str, to_year: str,
                          processed_by: str) -> List[Dict]:
        """Promote a department and stage cohort; one failure never stops the batch."""
        from_year, to_year = PromotionService._validate_years(from_year, to_year)

        with PromotionService.promotion_lock(processed_by):
            decisions = PromotionService.get_promotion_preview(department_id, stage_id, from_year)
            results = [
                PromotionService._execute_safely(decision, from_year, to_year, processed_by)
                for decision in decisions
            ]

        PromotionService._log_batch(results, processed_by)
        return results

    @staticmethod
    def execute_selected_promotion(student_ids: List[int], from_year: str, to_year: str,
                                   processed_by: str) -> List[Dict]:
        """Promote an arbitrary list of students, each evaluated on its own."""
        from_year, to_year = PromotionService._validate_years(from_year, to_year)
        results = []

        with PromotionService.promotion_lock(processed_by):
            for student_id in student_ids:
                student = db.session.get(Student, student_id)
                if student is None:
                    results.append({'success': False, 'student_id': str(student_id),
                                    'error': 'Student not found'})
                    continue
                if not student.has_placement():
                    results.append({'success': False, 'student_id': str(student_id),
                                    'error': 'Student has no department or stage'})
                    continue

                try:
                    current_stage = student.stage
                    decision = PromotionService.calculate_student_decision(
                        student, PromotionService._year_enrollments(student.id, from_year),
                        PromotionService.get_promotion_config(student.department_id),
                        Stage.next_after(current_stage), current_stage
                    )
                except Exception as e:
                    db.session.rollback()
                    logger.error("Promotion evaluation failed for student %s: %s", student_id, e)
                    results.append({'success': False, 'student_id': str(student_id),
                                    'error': str(e)})
                    continue

                results.append(
                    PromotionService._execute_safely(decision, from_year, to_year, processed_by)
                )

        PromotionService._log_batch(results, processed_by)
        return results

    @staticmethod
    def get_student_promotion_history(student_id: int) -> List[Dict]:
        if db.session.get(Student, student_id) is None:
            raise NotFoundError("Student not found")

        records = PromotionRecord.query.options(
            joinedload(PromotionRecord.stage_from), joinedload(PromotionRecord.stage_to)
        ).filter_by(student_id=student_id) \
            .order_by(PromotionRecord.processed_at.desc(), PromotionRecord.id.desc()).all()
        return [record.to_dict() for record in records]

    @staticmethod
    @contextmanager
    def promotion_lock(held_by: str):
        """Exclusive "promotion in progress" flag shared by every process."""
        timeout = current_app.config.get('PROMOTION_LOCK_TIMEOUT_MINUTES', 60)
        PromotionLock.query.filter(
            PromotionLock.name == PROMOTION_LOCK_NAME,
            PromotionLock.acquired_at < utcnow() - timedelta(minutes=timeout)
        ).delete(synchronize_session=False)

        db.session.add(PromotionLock(name=PROMOTION_LOCK_NAME, held_by=held_by))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A promotion is already in progress")

        try:
            yield
        finally:
            db.session.rollback()
            PromotionLock.query.filter_by(name=PROMOTION_LOCK_NAME, held_by=held_by) \
                .delete(synchronize_session=False)
            db.session.commit()

    # =================== INTERNALS ===================

    @staticmethod
    def _execute_safely(decision: StudentDecision, from_year: str, to_year: str,
                        processed_by: str) -> Dict:
        if PromotionService._already_processed(decision.student_id, from_year):
            logger.info("Skipping student %s, already promoted for %s", decision.student_id, from_year)
            return {'success': False, 'student_id': str(decision.student_id),
                    'error': f"Already promoted for {from_year}"}

        try:
            record = PromotionService.execute_decision(decision, from_year, to_year, processed_by)
        except Exception as e:
            logger.error("Promotion failed for student %s: %s", decision.student_id, e)
            return {'success': False, 'student_id': str(decision.student_id), 'error': str(e)}

        return {
            'success': True,
            'student_id': str(decision.student_id),
            'student_name': decision.student_name,
            'decision': decision.decision.value,
            'result': record.to_dict(),
        }

    @staticmethod
    def _already_processed(student_id: int, from_year: str) -> bool:
        """A student is promoted at most once out of an academic year."""
        return db.session.query(PromotionRecord.id).filter_by(
            student_id=student_id, academic_year_from=from_year
        ).first() is not None

    @staticmethod
    def _atomic(student_id: int, work) -> PromotionRecord:
        """Run one student's changes in a single transaction."""
        try:
            student = db.session.get(Student, student_id)
            if student is None:
                raise NotFoundError("Student not found")
            record = work(student)
            db.session.commit()
            return record
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def _record(decision: StudentDecision, outcome: PromotionDecision, from_year: str,
                to_year: str, processed_by: str, stage_to_id: Optional[int],
                carried_count: int = None) -> PromotionRecord:
        record = PromotionRecord(
            student_id=decision.student_id,
            academic_year_from=from_year,
            academic_year_to=to_year,
            stage_from_id=decision.current_stage_id,
            stage_to_id=stage_to_id,
            decision=outcome,
            failed_count=decision.failed_count,
            carried_count=decision.carried_count if carried_count is None else carried_count,
            processed_by=processed_by
        )
        db.session.add(record)
        return record

    @staticmethod
    def _enroll_stage(student: Student, stage_id: Optional[int], academic_year: str) -> None:
        """Enroll in every material of a stage within the student's department."""
        if stage_id is None:
            return
        materials = Material.query.filter_by(
            stage_id=stage_id, department_id=student.department_id
        ).order_by(Material.id).all()
        for material in materials:
            PromotionService._enroll(student.id, material.id, academic_year)

    @staticmethod
    def _enroll(student_id: int, material_id: int, academic_year: str,
                is_carried: bool = False) -> Optional[Enrollment]:
        """Create an IN_PROGRESS enrollment unless one already exists for the year."""
        exists = Enrollment.query.filter_by(
            student_id=student_id, material_id=material_id, academic_year=academic_year
        ).first()
        if exists is not None:
            return None

        enrollment = Enrollment(
            student_id=student_id,
            material_id=material_id,
            academic_year=academic_year,
            result_status=ResultStatus.IN_PROGRESS,
            is_carried=is_carried
        )
        db.session.add(enrollment)
        return enrollment

    @staticmethod
    def _year_enrollments(student_id: int, academic_year: str) -> List[Enrollment]:
        return Enrollment.query.options(joinedload(Enrollment.material)).filter_by(
            student_id=student_id, academic_year=academic_year
        ).order_by(Enrollment.id).all()

    @staticmethod
    def _validate_years(from_year: str, to_year: str):
        from_year = Validator.validate_academic_year(from_year, 'from_year')
        to_year = Validator.validate_academic_year(to_year, 'to_year')
        if from_year == to_year:
            raise ValidationError("from_year and to_year must differ")
        return from_year, to_year

    @staticmethod
    def _log_batch(results: List[Dict], processed_by: str) -> None:
        succeeded = sum(1 for result in results if result['success'])
        logger.info("Promotion batch by %s: %s succeeded, %s failed",
                    processed_by, succeeded, len(results) - succeeded)
