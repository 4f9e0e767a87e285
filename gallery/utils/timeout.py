from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from ..errors import AnalysisTimeout

# Shared pool so a call that loses the race can finish in the background
_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="ai-call")


def run_with_timeout(func, timeout_ms, *args, **kwargs):
    """Run func and give up after timeout_ms milliseconds.

    A timeout of zero or less runs the call inline without a timer.
    """
    if not timeout_ms or timeout_ms <= 0:
        return func(*args, **kwargs)
    future = _POOL.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_ms / 1000.0)
    except FutureTimeout:
        future.cancel()
        raise AnalysisTimeout(f"Operation timed out after {timeout_ms}ms")
