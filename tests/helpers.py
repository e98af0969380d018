from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import List

from mcpui.auth.claims import KeySet
from mcpui.auth.tokens import TokenService
from mcpui.auth.validation import KeySetFetchError

HOST_ORIGIN = "https://host.example"
UI_ORIGIN = "https://ui.example"
UI_URL = "https://ui.example/widgets/chart?id=1"
JWKS_URL = "https://host.example/.well-known/jwks.json"


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


class DeferredExecutor(Executor):
    """Queues submitted work until ``run_all`` is called."""

    def __init__(self) -> None:
        self.jobs: List[tuple] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


class StaticKeySource:
    """Key set source backed by a token service; can be switched to fail."""

    def __init__(self, service: TokenService) -> None:
        self.service = service
        self.calls: List[str] = []
        self.fail = False

    def fetch(self, jwks_url: str) -> KeySet:
        self.calls.append(jwks_url)
        if self.fail:
            raise KeySetFetchError(f"Failed to fetch key set from {jwks_url}")
        return self.service.publish_key_set()
