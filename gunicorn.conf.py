"""Gunicorn configuration for production deployment.

Usage:
    gunicorn journey_scheduler.main:app -c gunicorn.conf.py

Each worker process runs its own resume worker and recovery sweeper. The
claim transaction keeps processes from resuming the same run twice, so
WORKERS only trades database polling load for HTTP throughput.
"""
import os

bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '3000')}"

# every process polls the run table; keep the default small
workers = int(os.getenv("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
# shutdown drains in-flight trigger continuations
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

accesslog = None if os.getenv("DEBUG", "false").lower() == "true" else "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "INFO").lower()

proc_name = "journey-scheduler"

# timers start in the app lifespan, which must run inside each worker
preload_app = False
