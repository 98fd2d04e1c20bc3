"""WSGI configuration for production deployment."""
import os
from dotenv import load_dotenv

load_dotenv()

from campus_attendance import create_app
from campus_attendance.jobs import start_scheduler

# Create Flask application instance
app = create_app(os.getenv('FLASK_ENV', 'production'))

if app.config.get('SCHEDULER_ENABLED'):
    start_scheduler(app)

if __name__ == "__main__":
    app.run()
