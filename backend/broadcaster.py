import logging
import threading
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Sink = Callable[[BaseModel], None]

MAX_BUFFERED_SESSIONS = 256


class ProgressBroadcaster:
    """
    Session id -> single active sink.

    Delivery is best effort and at most once: publishing to a session nobody
    listens to drops the event. With `replay_size` > 0 the last events of a
    session are kept and handed to a sink when it subscribes.
    """

    def __init__(self, replay_size: int = 0, max_sessions: int = MAX_BUFFERED_SESSIONS) -> None:
        self.replay_size = max(0, replay_size)
        self.max_sessions = max_sessions
        self._sinks: Dict[str, Sink] = {}
        self._history: "OrderedDict[str, Deque[BaseModel]]" = OrderedDict()
        self._lock = threading.Lock()

    def subscribe(self, session_id: str, sink: Sink) -> None:
        """Register `sink`, replacing any previous sink for this session."""
        with self._lock:
            self._sinks[session_id] = sink
            backlog: List[BaseModel] = list(self._history.get(session_id, ()))
        for event in backlog:
            self._deliver(session_id, sink, event)

    def unsubscribe(self, session_id: str, sink: Optional[Sink] = None) -> None:
        """
        Drop the session's sink. When `sink` is given the mapping is only
        removed if it still points to that sink, so a closing connection
        never evicts the one that replaced it.
        """
        with self._lock:
            current = self._sinks.get(session_id)
            if current is None:
                return
            if sink is None or current is sink:
                del self._sinks[session_id]

    def publish(self, session_id: str, event: BaseModel) -> None:
        with self._lock:
            if self.replay_size:
                self._remember(session_id, event)
            sink = self._sinks.get(session_id)
        if sink is not None:
            self._deliver(session_id, sink, event)

    def is_subscribed(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sinks

    def _remember(self, session_id: str, event: BaseModel) -> None:
        buf = self._history.get(session_id)
        if buf is None:
            buf = deque(maxlen=self.replay_size)
            self._history[session_id] = buf
            while len(self._history) > self.max_sessions:
                self._history.popitem(last=False)
        else:
            self._history.move_to_end(session_id)
        buf.append(event)

    def _deliver(self, session_id: str, sink: Sink, event: BaseModel) -> None:
        try:
            sink(event)
        except Exception as e:
            logger.warning("[Broadcaster] Sink for session %s failed, dropping it: %s", session_id, e)
            self.unsubscribe(session_id, sink)
