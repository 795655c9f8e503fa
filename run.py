"""Local development server for the Taskboard API.

Usage:
    python run.py
    PORT=8000 python run.py

Runs the JSON API with the Flask reloader. If a project virtualenv
exists at ./venv and this interpreter is not it, the script re-launches
itself under the venv Python first.

Periodic jobs (digests, trash sweep) are not started here; run
`flask run-scheduler` in a second terminal.
"""

import os
import sys
import subprocess

# ── Auto-activate virtualenv ──
_project_dir = os.path.dirname(os.path.abspath(__file__))
_venv_python = os.path.join(_project_dir, "venv", "bin", "python")

if os.path.exists(_venv_python) and os.path.realpath(sys.executable) != os.path.realpath(_venv_python):
    print("[run.py] Re-launching under project venv...")
    try:
        sys.exit(subprocess.call([_venv_python] + sys.argv))
    except KeyboardInterrupt:
        sys.exit(0)

# ── API server ──
from dotenv import load_dotenv

load_dotenv()  # MAIL_*, DATABASE_URL, SECRET_KEY

from app import create_app

app = create_app(os.environ.get("FLASK_ENV", "development"))

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
