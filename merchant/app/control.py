# merchant/app/control.py
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from merchant.app.order_api import OrderAPI
from merchant.errors import AuthError, MerchantError, NotFoundError
from utils.logger import logger


class CancelReq(BaseModel):
    cancellationCode: Optional[str] = None


def build_app(api: OrderAPI,
              poller,
              credentials,
              *,
              token: Optional[str] = None,
              frontend_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(title="Merchant Order Reconciler")

    if frontend_url:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[frontend_url],
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    def _auth(x_token: Optional[str] = Header(default=None)):
        if token and x_token != token:
            raise HTTPException(status_code=401, detail="unauthorized")

    async def ensure_authenticated(_: None = Depends(_auth)):
        try:
            await credentials.get_valid_credential()
        except AuthError as e:
            logger.error(f"Authentication error: {e}")
            raise HTTPException(status_code=401, detail="authentication with the merchant platform failed")

    def _fail(e: Exception, what: str) -> HTTPException:
        logger.error(f"{what} failed: {e}")
        if isinstance(e, AuthError):
            return HTTPException(status_code=401, detail=f"{what}: authentication failed")
        return HTTPException(status_code=500, detail=f"{what}: {e}")

    @app.get("/api/health")
    async def health():
        return {"status": "OK", "polling": poller.running}

    @app.get("/api/start-polling", dependencies=[Depends(ensure_authenticated)])
    async def start_polling():
        poller.start(immediate=False)
        stats = await poller.tick()
        # a failed first poll is retried by the armed timer
        return {"message": "event polling started", "applied": stats.applied, "failed": stats.failed}

    @app.post("/api/orders/{order_id}/confirm", dependencies=[Depends(ensure_authenticated)])
    async def confirm(order_id: str):
        try:
            await api.confirm(order_id)
        except MerchantError as e:
            raise _fail(e, f"confirm order {order_id}")
        return {"success": True, "message": f"order {order_id} confirmed"}

    @app.post("/api/orders/{order_id}/start-preparation", dependencies=[Depends(ensure_authenticated)])
    async def start_preparation(order_id: str):
        try:
            await api.start_preparation(order_id)
        except MerchantError as e:
            raise _fail(e, f"start preparation of order {order_id}")
        return {"success": True, "message": f"order {order_id} preparation started"}

    @app.post("/api/orders/{order_id}/ready", dependencies=[Depends(ensure_authenticated)])
    async def ready(order_id: str):
        try:
            await api.ready_to_pickup(order_id)
        except MerchantError as e:
            raise _fail(e, f"mark order {order_id} ready")
        return {"success": True, "message": f"order {order_id} ready for pickup"}

    @app.post("/api/orders/{order_id}/dispatch", dependencies=[Depends(ensure_authenticated)])
    async def dispatch(order_id: str):
        try:
            await api.dispatch(order_id)
        except MerchantError as e:
            raise _fail(e, f"dispatch order {order_id}")
        return {"success": True, "message": f"order {order_id} dispatched"}

    @app.post("/api/orders/{order_id}/cancel", dependencies=[Depends(ensure_authenticated)])
    async def cancel(order_id: str, req: Optional[CancelReq] = None):
        code = req.cancellationCode if req else None
        if not code:
            raise HTTPException(status_code=400, detail="cancellationCode is required")
        try:
            await api.request_cancellation(order_id, code)
        except MerchantError as e:
            raise _fail(e, f"cancel order {order_id}")
        return {"success": True, "message": f"cancellation requested for order {order_id}"}

    @app.get("/api/orders/{order_id}/tracking", dependencies=[Depends(ensure_authenticated)])
    async def tracking(order_id: str):
        try:
            return await api.tracking(order_id)
        except MerchantError as e:
            raise _fail(e, f"tracking of order {order_id}")

    @app.get("/api/orders")
    async def list_orders():
        return [r.to_dict() for r in await api.list_orders()]

    @app.get("/api/orders/{order_id}")
    async def get_order(order_id: str):
        try:
            return await api.get_order(order_id)
        except MerchantError as e:
            logger.warning(f"Order {order_id} lookup failed: {e}")
            raise HTTPException(status_code=404, detail=f"order {order_id} not found")

    @app.get("/api/force-fetch-order/{order_id}", dependencies=[Depends(ensure_authenticated)])
    async def force_fetch(order_id: str):
        try:
            await api.force_fetch(order_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail=f"order {order_id} not found")
        except MerchantError as e:
            raise _fail(e, f"fetch order {order_id}")
        return {"success": True, "message": f"order {order_id} fetched"}

    @app.get("/api/dashboard")
    async def dashboard():
        return await api.dashboard()

    return app
