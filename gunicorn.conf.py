# gunicorn.conf.py
import multiprocessing, os

wsgi_app = "heliocal.main:app"
bind = f"0.0.0.0:{os.getenv('PORT','5000')}"
# one orbital year is a few hundred thousand ephemeris probes: CPU-bound, sync workers
workers = int(os.getenv("WEB_CONCURRENCY", max(2, multiprocessing.cpu_count())))
threads = 1
worker_class = "sync"
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
graceful_timeout = 30
keepalive = 2
accesslog = "-"   # stdout
errorlog = "-"    # stderr
loglevel = os.getenv("LOGLEVEL", "info")
preload_app = True

access_log_format = (
    '%(h)s - "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" '
    'req_id:%({X-Request-ID}i)s rt:%(L)s'
)
