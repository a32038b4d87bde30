"""
Local API server for SPA development (defaults to DevConfig on port 3001,
the port the SPA's dev proxy targets).
"""

import os
from roadway import create_app

os.environ.setdefault("APP_CONFIG", "roadway.config.DevConfig")

app = create_app()

if __name__ == "__main__":
    app.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", 3001)),
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
    )
