import os

from dotenv import load_dotenv

load_dotenv()

DB_ENVVAR = "DIFFS_DB"
PORT_ENVVAR = "DIFFS_PORT"

DEFAULT_PORT = 7001
DEFAULT_HOST = os.environ.get("DIFFS_HOST", "0.0.0.0")
LOG_LEVEL = os.environ.get("DIFFS_LOG_LEVEL", "INFO")
REMOTE_TIMEOUT = float(os.environ.get("DIFFS_REMOTE_TIMEOUT", "30"))
REMOTE_MAX_TRIES = int(os.environ.get("DIFFS_REMOTE_MAX_TRIES", "3"))
ACCOUNTS_FILE = os.environ.get("DIFFS_ACCOUNTS_FILE")
