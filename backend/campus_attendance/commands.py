"""Flask CLI commands (``flask <command>``)."""
import click
from flask import Flask
from flask.cli import with_appcontext

from campus_attendance import db

def register(app: Flask) -> None:
    """Attach the management commands to the app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first.')
    @with_appcontext
    def init_db(drop):
        """Create database tables."""
        if drop and click.confirm('Are you sure you want to drop all tables?'):
            db.drop_all()
            click.echo('Database tables dropped')
        db.create_all()
        click.echo('✅ Database tables created successfully!')

    @app.cli.command('seed-db')
    @with_appcontext
    def seed_db():
        """Seed database with development data."""
        from campus_attendance.services.seed_service import SeedService

        counts = SeedService.seed_all()
        for name, count in counts.items():
            click.echo(f'  {name}: {count}')
        click.echo('✅ Database seeded successfully!')
        click.echo('👤 Admin: admin@university.edu / admin123')
        click.echo('👨‍🏫 Teachers: ahmed.hassan@university.edu / teacher123')

    @app.cli.command('create-admin')
    @click.option('--name', prompt=True)
    @click.option('--email', prompt=True)
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--department-id', type=int, default=None)
    @with_appcontext
    def create_admin(name, email, password, department_id):
        """Create an administrator account."""
        from campus_attendance.models.accounts import Admin
        from campus_attendance.utils.validators import Validator

        email = email.lower().strip()
        if not Validator.validate_email(email):
            raise click.BadParameter('Invalid email format', param_hint='--email')
        if Admin.query.filter_by(email=email).first():
            raise click.ClickException(f'Admin {email} already exists')

        admin = Admin(name=name.strip(), email=email, department_id=department_id)
        admin.set_password(password)
        admin.save()
        click.echo(f'✅ Admin {email} created with id {admin.id}')

    @app.cli.command('cleanup-tokens')
    @with_appcontext
    def cleanup_tokens():
        """Delete expired and long-used QR tokens."""
        from campus_attendance.services.cleanup_service import cleanup_qr_tokens

        deleted = cleanup_qr_tokens()
        click.echo(f'✅ Deleted {deleted} QR tokens')

    @app.cli.command('process-notifications')
    @click.option('--limit', type=int, default=None, help='Maximum events to process.')
    @with_appcontext
    def process_notifications(limit):
        """Drain pending outbox events."""
        from campus_attendance.services.outbox_service import OutboxService

        stats = OutboxService.process_pending(limit)
        click.echo(f"✅ Processed {stats['processed']}, retrying {stats['retrying']}, "
                   f"failed {stats['failed']}")

    @app.cli.command('check-consecutive-absences')
    @click.option('--scope', type=click.Choice(['global', 'roster']), default=None,
                  help='Sessions to inspect; defaults to CONSECUTIVE_ABSENCE_SCOPE.')
    @with_appcontext
    def check_consecutive_absences(scope):
        """Issue expulsion warnings for runs of consecutive absences."""
        from campus_attendance.services.absence_warning_service import AbsenceWarningService

        warnings = AbsenceWarningService.check_consecutive_absences(scope)
        click.echo(f'✅ Issued {len(warnings)} expulsion warnings')
