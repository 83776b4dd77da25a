"""Shared fixtures for the quote sidecar tests."""
import asyncio

import pytest
from aiohttp.test_utils import TestClient, TestServer
from dstack_sdk.dstack_client import AttestResponse, GetQuoteResponse


class FakeClient:
    """Records every payload and answers with real SDK response objects built from it."""

    def __init__(self, quote_error=None, attest_error=None, event_log="[]", delay=0.0):
        self.quote_error = quote_error
        self.attest_error = attest_error
        self.event_log = event_log
        self.delay = delay
        self.quote_calls = []
        self.attest_calls = []

    async def get_quote(self, report_data: bytes) -> GetQuoteResponse:
        self.quote_calls.append(report_data)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.quote_error is not None:
            raise self.quote_error
        return GetQuoteResponse(quote=report_data.hex(), event_log=self.event_log)

    async def attest(self, report_data: bytes) -> AttestResponse:
        self.attest_calls.append(report_data)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.attest_error is not None:
            raise self.attest_error
        return AttestResponse(attestation=report_data.hex())


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def run_app():
    """Run ``scenario(test_client)`` against an app on an in-process test server."""

    def _run(app, scenario):
        async def _main():
            async with TestClient(TestServer(app)) as client:
                return await scenario(client)

        return asyncio.run(_main())

    return _run
