"""Gunicorn configuration for the reservation API."""

import os

bind = os.environ.get('RENTAL_BIND', '0.0.0.0:8000')

# SQLite has a single writer; reservation writes queue on BEGIN IMMEDIATE
# and DATABASE_TIMEOUT, so more workers only add lock contention.
workers = int(os.environ.get('RENTAL_WORKERS', 2))
threads = int(os.environ.get('RENTAL_THREADS', 4))
worker_class = 'gthread'

# Longer than DATABASE_TIMEOUT so a request waiting on the write lock is not killed first
timeout = 30
graceful_timeout = 30
keepalive = 5

log_dir = os.environ.get('RENTAL_LOG_DIR', 'logs')
accesslog = os.path.join(log_dir, 'gunicorn-access.log')
errorlog = os.path.join(log_dir, 'gunicorn-error.log')
loglevel = os.environ.get('RENTAL_LOG_LEVEL', 'info')
# %({x-user-id}i)s is the caller forwarded by the identity provider
access_log_format = '%(h)s %({x-user-id}i)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

proc_name = 'rentalhub'
preload_app = True

max_requests = 1000
max_requests_jitter = 50

limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190
