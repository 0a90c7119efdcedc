# app/run_server.py
import asyncio, signal, os
import contextlib
import uvicorn

from utils import logger, load_cfg
from infra.http_client import HttpClient
from merchant.config import MerchantSettings
from merchant.errors import AuthError
from merchant.services.endpoints import make_endpoints_from_cfg
from merchant.services.auth_service import CredentialCache
from merchant.services.order_gateway import OrderGateway
from merchant.services.projector import EventProjector
from merchant.services.poller import Poller
from merchant.stores.order_store import OrderStore
from merchant.stores.dedup_ledger import DedupLedger
from merchant.app.order_api import OrderAPI
from merchant.app.control import build_app


async def main():
    cfg = load_cfg()
    settings = MerchantSettings.from_cfg(cfg)
    server_cfg = cfg.get("server", {}) or {}
    token = os.environ.get("CONTROL_TOKEN") or server_cfg.get("control_token") or None

    async with HttpClient(cfg) as http:
        endpoints = make_endpoints_from_cfg(cfg)
        credentials = CredentialCache(
            http, endpoints, settings.client_id, settings.client_secret,
            safety_margin_s=settings.token_safety_margin_s,
        )
        gateway = OrderGateway(http, endpoints, credentials)
        store = OrderStore()
        ledger = DedupLedger()
        projector = EventProjector(gateway, store)
        poller = Poller(gateway, ledger, projector, interval_s=settings.poll_interval_s)
        api = OrderAPI(gateway, store)

        app = build_app(api, poller, credentials, token=token,
                        frontend_url=server_cfg.get("frontend_url") or None)
        server = uvicorn.Server(
            uvicorn.Config(app, host=server_cfg.get("host", "127.0.0.1"),
                                port=int(server_cfg.get("port", 5000)),
                                loop="asyncio",
                                lifespan="off",
                                timeout_keep_alive=10,
                                log_config=None,
                                access_log=False)
        )

        try:
            logger.info("Authenticating with the merchant platform...")
            await credentials.get_valid_credential()
            poller.start()
        except AuthError as e:
            logger.error(f"Initial authentication failed, polling not started: {e}")

        http_task = asyncio.create_task(server.serve(), name="http")
        stop_event = asyncio.Event()

        def _graceful(*_):
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _graceful)
            except NotImplementedError:
                pass  # Windows

        await stop_event.wait()
        await poller.stop()
        server.should_exit = True
        with contextlib.suppress(asyncio.CancelledError):
            await http_task

if __name__ == "__main__":
    asyncio.run(main())
