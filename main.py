"""Platform/WSGI entrypoint.

Hosting platforms that detect Flask look for an `app` object in `main.py`.
This module exposes `app` without shadowing the `app/` package.
"""

from app import create_app

app = create_app()


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=8000, debug=bool(app.config.get("DEBUG")))
