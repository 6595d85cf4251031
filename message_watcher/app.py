"""Main application - watches the message directory until told to stop."""
import signal
import sys
import threading

from message_watcher.logging_conf import logger
from message_watcher import settings
from message_watcher.handlers.chat_notification import ChatNotificationHandler
from message_watcher.watcher import MessageWatcher


def build_handlers():
    """Handlers enabled by configuration."""
    handlers = []
    if settings.CHAT_WEBHOOK_URL:
        handlers.append(ChatNotificationHandler())
    return handlers


class Application:
    """Runs a MessageWatcher in the foreground."""

    def __init__(self):
        self.watcher = None
        self._stop_requested = threading.Event()

    def start(self):
        """Start the application."""
        settings.validate_config()
        handlers = build_handlers()

        logger.info("=" * 50)
        logger.info("Message Watcher")
        logger.info("=" * 50)
        logger.info(f"Message directory: {settings.MESSAGE_DIR}")
        logger.info(f"Poll interval: {settings.POLL_INTERVAL}s")
        logger.info(f"Handlers: {', '.join(h.name for h in handlers) or 'none'}")
        logger.info("=" * 50)

        if not handlers:
            logger.warning("No handlers configured; every message will be quarantined")

        self.watcher = MessageWatcher(settings.MESSAGE_DIR, handlers)
        self.watcher.start()

    def request_stop(self):
        self._stop_requested.set()

    def stop(self):
        """Stop the application."""
        self.request_stop()
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

    def run(self):
        """Block until a stop is requested."""
        self.start()
        try:
            while not self._stop_requested.wait(1):
                pass
        except KeyboardInterrupt:
            pass
        self.stop()


def main():
    """Entry point."""
    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
