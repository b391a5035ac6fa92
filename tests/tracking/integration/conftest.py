import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient


@pytest.fixture()
def client():
    from protean.integrations.fastapi import register_exception_handlers
    from tracking.api import customer_router, delivery_router, manifest_router, package_router, partner_router
    from tracking.domain import tracking

    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with tracking.domain_context():
            return await call_next(request)

    for router in (package_router, manifest_router, customer_router, delivery_router, partner_router):
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)
