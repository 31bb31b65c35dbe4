import base64
import json
import os
import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")


def open_session() -> str:
    """POST /sessions -> session_id"""
    resp = requests.post(f"{BACKEND_URL}/sessions", timeout=10)
    resp.raise_for_status()
    return resp.json()["session_id"]


class ProgressListener(threading.Thread):
    """Reads /progress/{session_id} into `events` until the batch summary arrives or close() is called."""

    def __init__(self, session_id: str):
        super().__init__(daemon=True)
        self.session_id = session_id
        self.events: List[Dict[str, Any]] = []
        self.ready = threading.Event()
        self._stopped = threading.Event()
        self._resp: Optional[requests.Response] = None

    def run(self) -> None:
        try:
            with requests.get(
                f"{BACKEND_URL}/progress/{self.session_id}", stream=True, timeout=(10, None)
            ) as resp:
                self._resp = resp
                resp.raise_for_status()
                self.ready.set()
                if self._stopped.is_set():
                    return
                for line in resp.iter_lines(decode_unicode=True):
                    if not line or not line.startswith("data: "):
                        continue
                    event = json.loads(line[len("data: "):])
                    self.events.append(event)
                    if event.get("status") == "complete":
                        return
        except Exception as e:
            # close() tears the socket down under iter_lines; only report unexpected failures
            if not self._stopped.is_set():
                self.events.append({"status": "stream_error", "error": str(e)})
        finally:
            self.ready.set()

    def close(self) -> None:
        self._stopped.set()
        if self._resp is not None:
            self._resp.close()


def call_generate(artwork: Tuple[str, bytes, str], title: str, collection: str, session_id: str) -> Dict[str, Any]:
    files = {"artwork": artwork}
    data = {"title": title, "collection": collection, "session_id": session_id}
    resp = requests.post(f"{BACKEND_URL}/generate", files=files, data=data, timeout=None)
    if resp.status_code != 200:
        try:
            detail = resp.json().get("detail")
        except ValueError:
            detail = resp.text
        raise RuntimeError(f"{resp.status_code}: {detail}")
    return resp.json()


def decode_data_url(url: str) -> bytes:
    return base64.b64decode(url.split(",", 1)[1])

