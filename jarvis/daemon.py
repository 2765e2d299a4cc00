import logging
import signal
import sys
import threading

from . import commands, config
from .asr import create_transcriber
from .audio import SpeechGate
from .combiner import Combiner
from .config import ExecutorEnv, ListenerEnv
from .executor import ExecutorClient, MessageHandler, PynputActuator
from .llm import OllamaClient
from .processor import AudioProcessor
from .recorder import Recorder
from .server import TCPServer

log = logging.getLogger(__name__)


def setup_logging() -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list = [logging.StreamHandler(sys.stdout)]
    try:
        handlers.append(logging.FileHandler(config.LOG_FILE))
    except OSError:
        pass  # no write access to log file; stdout only
    logging.basicConfig(level=config.LOG_LEVEL, format=fmt, handlers=handlers)


class _Daemon:
    """Shared lifecycle: one stop event is the lifetime of every component."""

    def __init__(self):
        self._stop = threading.Event()

    def _start(self):
        raise NotImplementedError

    def run(self):
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._signal_handler)

        self._start()
        log.info("Press Ctrl-C to stop.")
        try:
            while not self._stop.wait(0.5):
                pass
        finally:
            self._shutdown()

    def _signal_handler(self, signum, frame):
        log.info("Received signal %d, shutting down …", signum)
        self._stop.set()

    def _shutdown(self):
        self._stop.set()
        log.info("Stopped.")


class ListenerDaemon(_Daemon):
    """
    Listener process:
      ffmpeg recorder → chunk dir → combiner → AudioProcessor → executor (TCP)
    """

    def __init__(self, env: ListenerEnv):
        super().__init__()
        interpreter = OllamaClient(
            env.ollama_url, env.ollama_model,
            timeout=env.ollama_timeout, debug=env.ollama_debug,
        )
        transcriber = create_transcriber(
            env.whisper_model, env.whisper_language, env.whisper_output_dir,
            debug=env.whisper_debug,
        )
        executor = ExecutorClient(
            env.executor_address,
            healthcheck=config.EXECUTOR_HEALTHCHECK,
            debug=env.executor_debug,
        )
        self._processor = AudioProcessor(
            transcriber, interpreter, executor,
            timeout=env.ollama_timeout,
            speech_gate=SpeechGate() if config.SPEECH_GATE else None,
            debug=env.audio_processor_debug,
        )
        self._recorder = Recorder(env.recorder_output_dir, debug=env.recorder_debug)
        self._combiner = Combiner(
            env.recorder_output_dir, env.combiner_output_dir, self._processor,
            debug=env.combiner_debug,
        )

    def _start(self):
        # Combiner first so it is watching before the first chunk lands.
        self._combiner.start(self._stop)
        self._recorder.start(self._stop)
        threading.Thread(target=self._watch_combiner, name="combiner-watch", daemon=True).start()

        log.info("Jarvis is listening …")
        log.info("To use Jarvis, say '%s, <command>!'", config.WAKE_WORD.capitalize())
        log.info("Available commands:")
        for command in commands.COMMANDS:
            log.info("\t- %s", commands.COMMANDS_HUMAN_READABLE[command])

    def _watch_combiner(self):
        self._combiner.wait()
        if not self._stop.is_set():
            log.error("Combiner stopped; no further commands until restart.")


class ExecutorDaemon(_Daemon):
    """Executor process: TCP server → MessageHandler → key tap."""

    def __init__(self, env: ExecutorEnv, actuator=None):
        super().__init__()
        handler = MessageHandler(
            actuator or PynputActuator(),
            debug=env.message_handler_debug,
            command_debug=env.command_debug,
        )
        self._server = TCPServer(env.executor_address, handler, debug=env.executor_debug)

    def _start(self):
        self._server.start(self._stop)
        threading.Thread(target=self._watch_server, name="server-watch", daemon=True).start()
        log.info("Jarvis is ready to execute commands …")

    def _watch_server(self):
        self._server.wait()
        if not self._stop.is_set():
            log.error("Executor server stopped; commands are no longer received.")
