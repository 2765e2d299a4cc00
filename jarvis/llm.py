import logging
import threading
from typing import Optional

import requests

from .errors import LLMError, LLMTimeout

log = logging.getLogger(__name__)


class OllamaClient:
    """
    Single-shot client for Ollama's POST /api/generate.

    Every prompt is independent; no history is kept. The timeout bounds the
    whole round trip: a small model that starts rambling is cut off and the
    caller treats that as "no command".
    """

    def __init__(self, url: str, model: str, timeout: Optional[float] = None, debug: bool = False):
        self._url     = url.rstrip("/")
        self._model   = model
        self._timeout = timeout
        self._debug   = debug

    def prompt(self, stop_event: threading.Event, prompt: str,
               timeout: Optional[float] = None) -> str:
        if stop_event.is_set():
            raise LLMTimeout("stop requested before prompting")

        payload = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
        }
        url = f"{self._url}/api/generate"

        try:
            resp = requests.post(
                url,
                json=payload,
                timeout=timeout if timeout is not None else self._timeout,
            )
            resp.raise_for_status()
            reply = resp.json()["response"]
            if not isinstance(reply, str):
                raise TypeError(f"response is {type(reply).__name__}, not str")
        except requests.Timeout as exc:
            raise LLMTimeout(f"ollama request timed out: {exc}") from exc
        except requests.RequestException as exc:
            raise LLMError(f"ollama request failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise LLMError(f"ollama unexpected response: {exc}") from exc

        if self._debug:
            log.info(
                "prompt: %s, ollama response: %s",
                prompt.replace("\n", " "), reply.replace("\n", " "),
            )
        return reply
