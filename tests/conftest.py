import os
import tempfile

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="message-watcher-logs-"))
os.environ.setdefault("LOG_LEVEL", "DEBUG")
