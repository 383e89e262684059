"""Web 入口。

浏览器通过 cookie 绑定到自己的会话：
- GET  /            初始表单
- POST /generate    新图（重置会话）
- POST /update      修改上一张图
- GET  /gallery     已接受图表的画廊
- GET  /api/conversation, /api/history  JSON 视图
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Cookie, Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse

from plot_agent.api.service import PlotService, get_default_service
from plot_agent.config.settings import settings
from plot_agent.domain.exceptions import BusinessError
from plot_agent.infrastructure.logging.logger import logger
from plot_agent.web import render

SESSION_COOKIE = "plot_session"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema 加载失败时不启动服务
    get_default_service()
    yield


app = FastAPI(
    title="Plotly Plot Generator",
    description="Conversational Plotly chart generation backed by an LLM",
    version="0.1.0",
    lifespan=lifespan,
)


def get_service() -> PlotService:
    return get_default_service()


@app.exception_handler(BusinessError)
async def business_error_handler(request: Request, exc: BusinessError):
    logger.error(f"Request failed: {exc.message}", extra={"extra": {"code": exc.code, "path": request.url.path}})
    return JSONResponse(status_code=exc.http_status, content={"code": exc.code, "message": exc.message})


def _page(title: str, session_id: str, *content: str) -> HTMLResponse:
    response = HTMLResponse(render.layout(title, *content))
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


def _render_outcome(result) -> str:
    if isinstance(result, dict):
        return render.render_result(result)
    return render.render_diagnostic(result)


@app.get("/", response_class=HTMLResponse)
def index(
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_or_create(plot_session)
    return _page("Plotly Plot Generator", session.id, render.render_initial_form())


@app.post("/generate", response_class=HTMLResponse)
def generate(
    data: str = Form(""),
    instruction: str = Form(""),
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_or_create(plot_session)
    result = service.start_new_plot(session.id, data, instruction)
    return _page("Plot Generated", session.id, _render_outcome(result), render.render_update_form())


@app.post("/update", response_class=HTMLResponse)
def update(
    instruction: str = Form(""),
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_or_create(plot_session)
    result = service.refine_plot(session.id, instruction)
    return _page("Plot Updated", session.id, _render_outcome(result), render.render_update_form())


@app.get("/gallery", response_class=HTMLResponse)
def gallery(
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_or_create(plot_session)
    return _page("Plot Gallery", session.id, render.render_gallery(service.history(session.id)))


@app.get("/api/conversation")
def conversation(
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_session(plot_session or "")
    return {"session_id": session.id, "messages": service.current_conversation(session.id)}


@app.get("/api/history")
def history(
    plot_session: Optional[str] = Cookie(default=None),
    service: PlotService = Depends(get_service),
):
    session = service.store.get_session(plot_session or "")
    return {"session_id": session.id, "entries": service.history(session.id)}


def main() -> None:
    uvicorn.run(app, host=settings.web_host, port=settings.web_port)


if __name__ == "__main__":
    main()
