"""
Gunicorn configuration for the Contest Engine API.

    gunicorn -c deploy/gunicorn.conf.py
"""
import os
import multiprocessing

from contest_engine.config import load_settings

wsgi_app = "contest_engine.main:app"

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes. Each worker owns its own Store (engine + pool).
# SQLite writers serialize on the file lock, so a SQLite URL defaults to one worker.
_default_workers = 1 if load_settings().database_url.startswith("sqlite") else multiprocessing.cpu_count() * 2 + 1
workers = int(os.environ.get("WEB_CONCURRENCY", _default_workers))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5

# Logging
log_dir = os.environ.get("LOG_DIR", "/app/logs")
accesslog = os.path.join(log_dir, "gunicorn_access.log")
errorlog = os.path.join(log_dir, "gunicorn_error.log")
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "contest-engine"

# Server mechanics
daemon = False
pidfile = "/tmp/contest-engine.pid"

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def when_ready(server):
    server.log.info(f"Contest Engine ready on {bind} with {workers} workers")
