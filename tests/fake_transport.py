"""In-memory stand-in for TelegramNotifier used across the tests."""

import threading


class FakeTransport:
    """Records send_message calls; optionally rejects the Nth call (1-based)."""

    def __init__(self, fail_on_call=None, fail_all=False):
        self.sent = []
        self.calls = 0
        self.fail_on_call = fail_on_call
        self.fail_all = fail_all
        self._lock = threading.Lock()

    def send_message(self, chat_id, text, parse_mode=None):
        with self._lock:
            self.calls += 1
            if self.fail_all or self.calls == self.fail_on_call:
                return False
            self.sent.append((chat_id, text, parse_mode))
            return True

    def texts(self):
        with self._lock:
            return [text for _, text, _ in self.sent]

    def bodies(self):
        """Message texts with the <pre> wrapper removed."""
        return [t[len("<pre>"):-len("</pre>")] if t.startswith("<pre>") else t for t in self.texts()]
