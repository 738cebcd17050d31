import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Iterator, List, Sequence

from conversation_sync.config import WORKER_POOL_SIZE
from conversation_sync.request_helpers import log_exception
from conversation_sync.types import Batch, Conversation, Principal

# end of the work queue, one per worker
_STOP = object()
# end of the results channel, posted once every worker has exited
_CLOSED = object()

ProcessFn = Callable[[Principal], List[Conversation]]


def _worker(
    ctx: Dict[str, Any],
    worker_id: int,
    work: "queue.Queue",
    results: "queue.Queue",
    process: ProcessFn,
) -> int:
    handled = 0
    while True:
        principal = work.get()
        if principal is _STOP:
            return handled
        handled += 1
        try:
            conversations = process(principal)
        except Exception as e:
            log_exception(
                ctx,
                f"principal {principal.id} ({principal.email})",
                e,
                prefix=f"[worker {worker_id}] ",
            )
            continue
        if conversations:
            results.put(Batch(principal=principal, conversations=list(conversations)))


def dispatch(
    ctx: Dict[str, Any],
    principals: Sequence[Principal],
    process: ProcessFn,
    pool_size: int = WORKER_POOL_SIZE,
) -> "queue.Queue":
    """Fan ``principals`` out over a fixed pool of worker threads.

    Every principal is enqueued up front and the work queue is closed with
    one stop marker per worker. Each non-empty result becomes a Batch on the
    returned results queue. A closer thread waits for all workers and then
    posts the end marker, so iter_batches() over the returned queue ends
    exactly once every worker has finished.
    """
    if pool_size < 1:
        raise ValueError("pool_size must be >= 1")

    results: "queue.Queue" = queue.Queue(maxsize=len(principals) + 1)
    if not principals:
        results.put(_CLOSED)
        return results

    n_workers = min(pool_size, len(principals))
    work: "queue.Queue" = queue.Queue()
    for principal in principals:
        work.put(principal)
    for _ in range(n_workers):
        work.put(_STOP)

    executor = ThreadPoolExecutor(
        max_workers=n_workers, thread_name_prefix="sync-worker"
    )
    futures = [
        executor.submit(_worker, ctx, i, work, results, process)
        for i in range(n_workers)
    ]
    ctx["log"].info(
        f"[dispatch] {len(principals)} principals queued for {n_workers} workers"
    )

    def _close_when_done() -> None:
        try:
            wait(futures)
            executor.shutdown(wait=True)
            handled = sum(f.result() for f in futures if f.exception() is None)
            ctx["log"].info(f"[dispatch] all workers done, {handled} principals handled")
        finally:
            results.put(_CLOSED)

    threading.Thread(
        target=_close_when_done,
        name=f"{ctx.get('mode') or 'sync'}-closer",
        daemon=True,
    ).start()
    return results


def iter_batches(results: "queue.Queue") -> Iterator[Batch]:
    while True:
        item = results.get()
        if item is _CLOSED:
            return
        yield item
