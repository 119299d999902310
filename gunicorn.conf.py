"""
Gunicorn configuration for the claim dossier API.

Usage:
    gunicorn dossier.main:app -c gunicorn.conf.py

The worker pool runs separately: python -m dossier.worker
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")

# The API only enqueues and reads; a small pool is enough
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2 + 1, 4)))

# Uvicorn's ASGI worker for FastAPI
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = "info"
