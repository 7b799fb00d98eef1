import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict

from tomorrowify.application.worker import RotationWorker, UserResult
from tomorrowify.crosscutting.logging import bind_user, log_error, log_with_fields
from tomorrowify.domain.entities import UserCredential
from tomorrowify.domain.ports import TokenRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionSignal:
    """Returned once every dispatched user task has finished, whatever its outcome."""

    dispatched: int
    completed: int


class Orchestrator:
    """Fans the rotation out over every stored user.

    Tasks run on a bounded thread pool. A failure in one task is logged with the user key
    and discarded; it never stops the other tasks or reaches the caller.
    """

    def __init__(self, tokens: TokenRepository, worker: RotationWorker, max_workers: int = 8):
        """Initialize orchestrator.

        Args:
            tokens: Source of user credentials
            worker: Per-user rotation worker
            max_workers: Pool size; 0 runs one thread per user
        """
        if max_workers < 0:
            raise ValueError("max_workers must not be negative")
        self.tokens = tokens
        self.worker = worker
        self.max_workers = max_workers

    def _pool_size(self, user_count: int) -> int:
        if self.max_workers == 0:
            return user_count
        return min(self.max_workers, user_count)

    def _run_user(self, credential: UserCredential) -> UserResult:
        log = bind_user(logger, credential.key)
        result = self.worker.run(credential, log=log)
        if result.ok:
            log.info("Completed updating playlists")
        else:
            log_error(log, "Failure to update playlists", result.error.cause,
                      status=result.status)
        return result

    def run_all(self) -> CompletionSignal:
        credentials = self.tokens.get_all_tokens()
        if not credentials:
            logger.info("No stored users, nothing to rotate")
            return CompletionSignal(dispatched=0, completed=0)

        start_time = time.time()
        statuses: Counter = Counter()
        completed = 0

        with ThreadPoolExecutor(max_workers=self._pool_size(len(credentials)),
                                thread_name_prefix='rotation') as executor:
            futures: Dict = {executor.submit(self._run_user, credential): credential
                             for credential in credentials}
            for future in as_completed(futures):
                credential = futures[future]
                completed += 1
                try:
                    statuses[future.result().status] += 1
                except Exception as e:
                    statuses['unexpected_error'] += 1
                    log_error(bind_user(logger, credential.key),
                              "Unexpected failure while updating playlists", e)

        log_with_fields(logger, 'INFO', 'Rotation run completed', {
            'users': len(credentials),
            'duration_ms': int((time.time() - start_time) * 1000),
            **dict(statuses),
        })
        return CompletionSignal(dispatched=len(credentials), completed=completed)

