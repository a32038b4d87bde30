"""
Gunicorn entry point for the Roadway API.

    gunicorn -w 2 -k gthread --timeout 30 -b 0.0.0.0:$PORT wsgi:app

The worker timeout must stay above MODERATION_TIMEOUT_SECONDS (x retries), since
a post submission waits on the classifier before it is stored.
"""

from roadway import create_app

app = create_app()
