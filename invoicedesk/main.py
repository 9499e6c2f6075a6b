import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request

from .api_client import ApiClient
from .auth_client import AuthClient
from .config import Settings, settings
from .invoice_client import InvoiceClient
from .models import LoginForm, NewInvoice, PageResult, SessionView, SignupForm
from .service import FrontendService
from .session import AuthSession
from .token_store import build_token_store

logger = logging.getLogger(__name__)


def build_frontend(cfg: Settings) -> FrontendService:
    store = build_token_store(cfg)
    auth = AuthClient(cfg.API_BASE_URL, cfg.HTTP_TIMEOUT_SEC)
    session = AuthSession(store, auth, coalesce_refresh=bool(cfg.COALESCE_REFRESH))
    api = ApiClient(cfg.API_BASE_URL, session, cfg.HTTP_TIMEOUT_SEC, login_path=cfg.LOGIN_PATH)
    svc = FrontendService(
        session,
        auth,
        InvoiceClient(api),
        login_path=cfg.LOGIN_PATH,
        stale_sec=cfg.INVOICES_STALE_SEC,
        fetch_retries=cfg.INVOICES_FETCH_RETRIES,
    )
    api.on_forced_logout = svc.navigate
    return svc


def create_app(frontend: Optional[FrontendService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.frontend is None:
            app.state.frontend = build_frontend(settings)
        view = app.state.frontend.session.load()
        logger.info("Session loaded: %s", view.status.value)
        yield

    app = FastAPI(title="InvoiceDesk", lifespan=lifespan)
    app.state.frontend = frontend

    def get_frontend(request: Request) -> FrontendService:
        return request.app.state.frontend

    @app.get("/session", response_model=SessionView)
    async def session_view(svc: FrontendService = Depends(get_frontend)):
        return svc.session.snapshot()

    @app.post("/login", response_model=PageResult)
    async def login(inp: LoginForm, svc: FrontendService = Depends(get_frontend)):
        return await svc.login(inp)

    @app.post("/signup", response_model=PageResult)
    async def signup(inp: SignupForm, svc: FrontendService = Depends(get_frontend)):
        return await svc.signup(inp)

    @app.get("/dashboard", response_model=PageResult)
    async def dashboard(refetch: bool = False, svc: FrontendService = Depends(get_frontend)):
        return await svc.dashboard(refetch=refetch)

    @app.post("/invoices/new", response_model=PageResult)
    async def new_invoice(inp: NewInvoice, svc: FrontendService = Depends(get_frontend)):
        return await svc.create_invoice(inp)

    @app.post("/logout", response_model=PageResult)
    async def logout(svc: FrontendService = Depends(get_frontend)):
        return svc.logout()

    return app


logging.basicConfig(level=settings.LOG_LEVEL)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
