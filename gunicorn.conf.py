"""Gunicorn configuration for the i-approve API.

    gunicorn -c gunicorn.conf.py --chdir backend app.main:app
"""
import multiprocessing
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
# Recycle workers so the per-process MinIO client and DB pool are rebuilt periodically.
max_requests = 1000
max_requests_jitter = 100
# Not preloaded: each worker owns its async engine.
preload_app = False
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
