"""Gunicorn production configuration."""
import multiprocessing
import os

wsgi_app = "app.main:app"
chdir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")
bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Only these proxies may set the client address via X-Forwarded-For.
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")
# Large CSV uploads are parsed in-request.
timeout = 120
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = True
accesslog = "-"
errorlog = "-"
loglevel = "info"
