"""
Test doubles shared across the test suite.
"""

import asyncio
from collections import defaultdict
from pathlib import Path
from docscan.core.errors import StorageAuthError, StorageTransientError
from docscan.services.permissions import PlatformPermission
from docscan.services.storage.memory import InMemoryObjectStorage


class FakePermissionProvider:
    """Platform permission double that records prompts"""

    def __init__(self, status: PlatformPermission, request_result: PlatformPermission | None = None):
        self.current = status
        self.request_result = request_result or status
        self.requests = 0
        self.settings_opened = 0

    async def status(self, permission: str) -> PlatformPermission:
        return self.current

    async def request(self, permission: str) -> PlatformPermission:
        self.requests += 1
        self.current = self.request_result
        return self.current

    async def open_settings(self) -> bool:
        self.settings_opened += 1
        return True


class StaticCapture:
    """Capture capability returning a fixed list of paths"""

    def __init__(self, paths: list[Path], error: Exception | None = None, delay: float = 0.0):
        self.paths = list(paths)
        self.error = error
        self.delay = delay
        self.calls: list[int] = []

    async def scan(self, max_pages: int) -> list[Path]:
        self.calls.append(max_pages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.paths)


class FlakyStorage(InMemoryObjectStorage):
    """
    In-memory storage that fails the first ``transient_failures`` puts of each
    key, always rejects the pages listed in ``auth_fail_pages``, and tracks how many
    puts run at the same time.
    """

    def __init__(self, transient_failures: int = 0, auth_fail_pages: set[int] | None = None, delay: float = 0.0):
        super().__init__()
        self.transient_failures = transient_failures
        self.auth_fail_pages = auth_fail_pages or set()
        self.delay = delay
        self.attempts: dict[str, int] = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(self, bucket, key, data, content_type="application/octet-stream"):
        self.attempts[key] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            page_index = int(key.rsplit("page-", 1)[1][:3])
            if page_index in self.auth_fail_pages:
                raise StorageAuthError(f"403 for {key}")
            if self.attempts[key] <= self.transient_failures:
                raise StorageTransientError(f"503 for {key}")
            return await super().put(bucket, key, data, content_type)
        finally:
            self.in_flight -= 1


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays without waiting"""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
