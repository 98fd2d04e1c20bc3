# File: backend/campus_attendance/services/seed_service.py
"""Database seeding service for development data."""
import random
from typing import Dict

from campus_attendance import db
from campus_attendance.models.academic import Department, Geofence, Material, Stage
from campus_attendance.models.accounts import Admin, Student, Teacher
from campus_attendance.models.enrollment import Enrollment, ResultStatus

ACADEMIC_YEAR = "2024-2025"

class SeedService:
    """Service to seed database with development data."""

    @staticmethod
    def seed_all() -> Dict[str, int]:
        """Seed all development data. Safe to run only on an empty database."""
        SeedService.seed_structure()
        SeedService.seed_staff()
        SeedService.seed_students()
        return {
            'departments': Department.query.count(),
            'stages': Stage.query.count(),
            'materials': Material.query.count(),
            'teachers': Teacher.query.count(),
            'students': Student.query.count(),
            'enrollments': Enrollment.query.count(),
        }

    @staticmethod
    def seed_structure():
        """Departments, four stages, materials and one campus geofence."""
        departments = [Department(name='علوم الحاسوب'), Department(name='هندسة البرمجيات')]
        stages = [
            Stage(name='المرحلة الأولى', level=1),
            Stage(name='المرحلة الثانية', level=2),
            Stage(name='المرحلة الثالثة', level=3),
            Stage(name='المرحلة الرابعة', level=4),
        ]
        db.session.add_all(departments + stages)
        db.session.flush()

        subjects = [
            ('البرمجة', True),
            ('الرياضيات', True),
            ('قواعد البيانات', False),
            ('اللغة الإنكليزية', False),
        ]
        for department in departments:
            for stage in stages:
                for subject, is_core in subjects:
                    db.session.add(Material(
                        name=f"{subject} {stage.level}",
                        department_id=department.id,
                        stage_id=stage.id,
                        is_core_subject=is_core
                    ))

        # Baghdad main campus
        db.session.add(Geofence(name='المبنى الرئيسي', latitude=33.3152,
                                longitude=44.3661, radius_meters=100))
        db.session.commit()

    @staticmethod
    def seed_staff():
        """One admin and a few teachers."""
        admin = Admin(name='مدير النظام', email='admin@university.edu')
        admin.set_password('admin123')
        db.session.add(admin)

        teachers_data = [
            ('د. أحمد حسن', 'ahmed.hassan'),
            ('د. فاطمة علي', 'fatima.ali'),
            ('د. محمد إبراهيم', 'mohammed.ibrahim'),
        ]
        department = Department.query.order_by(Department.id).first()
        for name, username in teachers_data:
            teacher = Teacher(name=name, email=f"{username}@university.edu",
                              department_id=department.id)
            teacher.set_password('teacher123')
            db.session.add(teacher)

        db.session.commit()

    @staticmethod
    def seed_students(per_cohort: int = 5):
        """Students in every department and stage, enrolled in their stage's materials."""
        first_names = ['أحمد', 'محمد', 'علي', 'عمر', 'حسين', 'فاطمة', 'زينب', 'مريم', 'نور', 'سارة']
        last_names = ['الحسني', 'العراقي', 'البغدادي', 'الكربلائي', 'النجفي', 'البصري']

        number = 1
        for department in Department.query.order_by(Department.id).all():
            for stage in Stage.query.order_by(Stage.level).all():
                materials = Material.query.filter_by(department_id=department.id,
                                                     stage_id=stage.id).all()
                for _ in range(per_cohort):
                    student = Student(
                        name=f"{random.choice(first_names)} {random.choice(last_names)}",
                        email=f"student{number}@university.edu",
                        student_number=f"CS{number:05d}",
                        department_id=department.id,
                        stage_id=stage.id,
                        academic_year=ACADEMIC_YEAR
                    )
                    student.set_password('student123')
                    db.session.add(student)
                    db.session.flush()

                    for material in materials:
                        db.session.add(Enrollment(
                            student_id=student.id,
                            material_id=material.id,
                            academic_year=ACADEMIC_YEAR,
                            result_status=ResultStatus.IN_PROGRESS
                        ))
                    number += 1

        db.session.commit()
