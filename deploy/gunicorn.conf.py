import multiprocessing
import os

wsgi_app = "syllabus_app.main:app"
bind = os.getenv("SYLLABUS_BIND", "127.0.0.1:8000")
workers = int(os.getenv("SYLLABUS_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Uploads are buffered in memory before hitting the file store.
timeout = 120
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
