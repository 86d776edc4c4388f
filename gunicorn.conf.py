"""Gunicorn configuration for the CleanStock inventory app."""
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# Each worker keeps its own in-memory inventory mirror, so stay at one worker
# unless the mirrors are allowed to drift between reloads.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))

# Log to stdout/stderr by default so container orchestrators can capture logs.
accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
