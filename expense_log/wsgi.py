"""
WSGI config for the expense_log project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "expense_log.settings")

application = get_wsgi_application()
