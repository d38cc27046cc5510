import os


bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
wsgi_app = os.environ.get("GUNICORN_WSGI_APP", "consultant_site.wsgi:application")
workers = int(os.environ.get("GUNICORN_WORKERS", "2") or "2")
# The chat event stream holds a thread for the life of the connection.
worker_class = os.environ.get("GUNICORN_WORKER_CLASS", "gthread")
threads = int(os.environ.get("GUNICORN_THREADS", "8") or "8")
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "120") or "120")
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT", "30") or "30")
keepalive = int(os.environ.get("GUNICORN_KEEPALIVE", "5") or "5")

accesslog = os.environ.get("GUNICORN_ACCESSLOG", "-")
errorlog = os.environ.get("GUNICORN_ERRORLOG", "-")
loglevel = os.environ.get("GUNICORN_LOGLEVEL", "info")
