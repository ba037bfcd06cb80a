"""Minimal terminal chat on top of ChatSessionController.

Each turn runs on a worker thread so Ctrl+C can cancel a streaming reply.
The transcript is kept bounded with the same FIFO policy as the history;
evicted lines drop their text and stop receiving stream updates.
"""

import sys
import threading

from claude_chat.api.service import create_chat_controller
from claude_chat.config.settings import settings
from claude_chat.utils.history_trimmer import trim_resources_if_needed


class TranscriptLine:
    def __init__(self, speaker, text=""):
        self.speaker = speaker
        self.text = text

    def render(self):
        return f"{self.speaker}: {self.text}"


class TerminalView:
    def __init__(self):
        self.transcript = []
        self._streaming_line = None
        self._printed = 0

    def on_message(self, message, is_user):
        self._printed = 0
        if is_user:
            self._streaming_line = None
            self._add(TranscriptLine("You", message.content))
            return
        line = TranscriptLine("Claude", message.content)
        self._streaming_line = line
        self._add(line)
        sys.stdout.write(line.render())
        sys.stdout.flush()

    def on_update(self, text):
        sys.stdout.write(text[self._printed:])
        sys.stdout.flush()
        self._printed = len(text)
        if self._streaming_line is not None:
            self._streaming_line.text = text

    def on_error(self, message):
        print(f"\n[error] {message}")

    def _add(self, line):
        self.transcript.append(line)
        trim_resources_if_needed(self.transcript, settings.max_ui_messages, settings.ui_trim_count, self._release)

    def _release(self, line):
        line.text = ""
        if line is self._streaming_line:
            self._streaming_line = None


if __name__ == "__main__":
    view = TerminalView()
    streaming = "--stream" in sys.argv or settings.use_streaming
    with create_chat_controller(view.on_message, view.on_update, view.on_error, use_streaming=streaming) as controller:
        while True:
            try:
                text = input("> ")
            except EOFError:
                break
            worker = threading.Thread(target=controller.send_user_message, args=(text,), daemon=True)
            worker.start()
            try:
                worker.join()
            except KeyboardInterrupt:
                controller.cancel_streaming()
                worker.join()
            print()
