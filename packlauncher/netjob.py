"""A set of network requests run concurrently, with automatic retries."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait

from packlauncher.netrequest import NetRequest, NetworkError, RequestState, Transport

log = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 6
MAX_TRIES = 3
_OFFLINE_ERRORS = (NetworkError.HOST_NOT_FOUND, NetworkError.NETWORK_SESSION_FAILED)


class NetJob:
    """Runs its requests in parallel; failed ones are retried up to three times."""

    def __init__(
        self,
        name: str,
        transport: Transport | None = None,
        max_concurrent: int = -1,
        *,
        ask_retry: bool = True,
        retry_prompt: Callable[[list[str]], bool] | None = None,
        max_manual_retries: int = 1,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        self.name = name
        self.transport = transport
        self.max_concurrent = max_concurrent if max_concurrent > 0 else DEFAULT_MAX_CONCURRENT
        self.ask_retry = ask_retry
        self.retry_prompt = retry_prompt
        self.max_manual_retries = max_manual_retries
        self.on_progress = on_progress
        self.state = RequestState.INACTIVE
        self.fail_reason = ""
        self.status = ""
        self.progress = (0, 0)
        self._lock = threading.RLock()
        self._queue: deque[NetRequest] = deque()
        self._doing: dict[int, NetRequest] = {}
        self._done: dict[int, NetRequest] = {}
        self._failed: dict[int, NetRequest] = {}
        self._try = 0
        self._manual_try = 0
        self._aborted = False
        self._fully_aborted = True

    def add_net_action(self, action: NetRequest) -> bool:
        if self.transport is not None:
            action.transport = self.transport
        with self._lock:
            self._queue.append(action)
        return True

    def size(self) -> int:
        with self._lock:
            return len(self._queue) + len(self._doing) + len(self._done)

    def can_abort(self) -> bool:
        with self._lock:
            parts = [*self._queue, *self._doing.values()]
        return all(part.can_abort() for part in parts)

    def abort(self) -> bool:
        """Fail everything still queued and abort what is running."""
        with self._lock:
            for action in self._queue:
                self._failed[id(action)] = action
            self._queue.clear()
            to_kill = list(self._doing.values())
            self._aborted = True
        fully_aborted = all([part.abort() for part in to_kill])
        self._fully_aborted = fully_aborted
        if fully_aborted:
            self.state = RequestState.ABORTED_BY_USER
        else:
            self.state = RequestState.FAILED
            self.fail_reason = "Failed to abort all tasks in the NetJob!"
        return fully_aborted

    def failed_actions(self) -> list[NetRequest]:
        with self._lock:
            return list(self._failed.values())

    def failed_files(self) -> list[str]:
        return [action.url for action in self.failed_actions()]

    def is_online(self) -> bool:
        """False when every failure looks like a missing network connection."""
        return any(action.error not in _OFFLINE_ERRORS for action in self.failed_actions())

    def run(self) -> RequestState:
        """Run all queued requests and return the job's final state."""
        with self._lock:
            self._aborted = False
            self._fully_aborted = True
            self._try = 0
        self.state = RequestState.RUNNING
        self.fail_reason = ""
        self._update_state()

        with ThreadPoolExecutor(max_workers=self.max_concurrent) as pool:
            while True:
                with self._lock:
                    if (
                        not self._aborted
                        and not self._queue
                        and self._failed
                        and self._try < MAX_TRIES
                    ):
                        self._try += 1
                        self._requeue_failed()
                    pending = list(self._queue)
                    aborted = self._aborted
                if pending and not aborted:
                    wait([pool.submit(self._run_one, action) for action in pending])
                    continue
                if not aborted and self._failed and self._manual_retry():
                    with self._lock:
                        self._try = 0
                    continue
                break

        return self._conclude()

    def _requeue_failed(self) -> None:
        for key, action in list(self._failed.items()):
            self._done.pop(key, None)
            self._queue.append(action)
        self._failed.clear()

    def _manual_retry(self) -> bool:
        if not (self.ask_retry and self.retry_prompt is not None):
            return False
        if self._manual_try >= self.max_manual_retries or not self.is_online():
            return False
        self._manual_try += 1
        return bool(self.retry_prompt(self.failed_files()))

    def _conclude(self) -> RequestState:
        with self._lock:
            aborted = self._aborted
            failed = len(self._failed)
        if aborted:
            if self._fully_aborted:
                self.state = RequestState.ABORTED_BY_USER
            else:
                self.state = RequestState.FAILED
                self.fail_reason = "Failed to abort all tasks in the NetJob!"
        elif failed:
            self.state = RequestState.FAILED
            self.fail_reason = f"{failed} of {self.size()} task(s) failed"
        else:
            self.state = RequestState.SUCCEEDED
        return self.state

    def _run_one(self, action: NetRequest) -> None:
        with self._lock:
            if self._aborted or action not in self._queue:
                return
            self._queue.remove(action)
            self._doing[id(action)] = action
        self._update_state()

        try:
            state = action.execute()
        except Exception:
            log.exception("Request %s in job %s raised", action.url, self.name)
            state = RequestState.FAILED

        with self._lock:
            self._doing.pop(id(action), None)
            self._done[id(action)] = action
            if state is not RequestState.SUCCEEDED:
                self._failed[id(action)] = action
        self._update_state()

    def _update_state(self) -> None:
        with self._lock:
            doing = len(self._doing)
            done = len(self._done)
            total = len(self._queue) + doing + done
        self.progress = (done, total)
        self.status = f"Executing {doing} task(s) ({done} out of {total} are done)"
        if self.on_progress is not None:
            self.on_progress(done, total)