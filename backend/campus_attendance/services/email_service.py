"""Email delivery through Flask-Mail."""
import logging

from flask import render_template
from flask_mail import Message

from campus_attendance import mail
from campus_attendance.models.absence_warning import WarningType

logger = logging.getLogger(__name__)

# Title and body line per warning level
WARNING_CONTENT = {
    WarningType.NOTICE: (
        'تنبيه',
        'نود إعلامك أن نسبة غيابك قد تجاوزت 3%. نرجو الالتزام بالحضور لتجنب العقوبات.'
    ),
    WarningType.FIRST_WARNING: (
        'إنذار أولي',
        'تجاوزت نسبة غيابك 5%. هذا إنذار رسمي أولي. استمرار الغياب قد يؤدي لعقوبات أشد.'
    ),
    WarningType.FINAL_WARNING: (
        'إنذار نهائي',
        'تجاوزت نسبة غيابك 7%. هذا إنذار نهائي! استمرار الغياب سيؤدي للرسوب بالغياب.'
    ),
    WarningType.ABSENCE_FAIL: (
        'رسوب بالغياب',
        'للأسف، تجاوزت نسبة غيابك الحد المسموح. أنت الآن راسب في هذه المادة ولا يحق لك النجاح بالعبور.'
    ),
}

class EmailService:
    """Best-effort senders: they report success instead of raising."""

    @staticmethod
    def send_email(to: str, subject: str, html: str) -> bool:
        try:
            mail.send(Message(subject=subject, recipients=[to], html=html))
            logger.info("Email sent to %s: %s", to, subject)
            return True
        except Exception as e:
            logger.error("Failed to send email to %s: %s", to, e)
            return False

    @staticmethod
    def send_warning_email(to: str, student_name: str, material_name: str,
                           percentage: float, warning_type: WarningType) -> bool:
        """Percentage-threshold warning for one material."""
        title, body = WARNING_CONTENT[warning_type]
        subject = f"{title}: نسبة غيابك في {material_name} بلغت {percentage}%"
        html = render_template(
            'email/absence_warning.html',
            student_name=student_name,
            material_name=material_name,
            percentage=percentage,
            title=title,
            body=body
        )
        return EmailService.send_email(to, subject, html)

    @staticmethod
    def send_expulsion_warning(to: str, student_name: str, consecutive_days: int) -> bool:
        """Warning after a run of consecutive absences."""
        html = render_template(
            'email/expulsion_warning.html',
            student_name=student_name,
            consecutive_days=consecutive_days
        )
        return EmailService.send_email(to, 'تحذير فصل: غياب متتالي', html)

    @staticmethod
    def send_login_notification(to: str, student_name: str, login_time: str,
                                ip_address: str = None) -> bool:
        html = render_template(
            'email/login_notification.html',
            student_name=student_name,
            login_time=login_time,
            ip_address=ip_address
        )
        return EmailService.send_email(to, 'تنبيه: تسجيل دخول جديد إلى حسابك', html)
