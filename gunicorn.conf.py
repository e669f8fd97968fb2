"""
Gunicorn configuration.

    gunicorn -c gunicorn.conf.py run:app
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Attendance marking is short requests; a few sync workers suffice
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = int(os.getenv('GUNICORN_TIMEOUT', '60'))
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info').lower()
capture_output = True

proc_name = 'ledenbeheer'

preload_app = True
graceful_timeout = 30


def on_starting(server):
    server.log.info("Starting Ledenbeheer server")


def on_exit(server):
    server.log.info("Ledenbeheer server shutting down")
