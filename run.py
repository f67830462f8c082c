"""Local development entry point.

Usage:
    python run.py
    flask --app run run --port 5001

Loads .env before the app reads its configuration.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from herd import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
