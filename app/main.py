"""应用入口：负责创建 FastAPI 实例并绑定生命周期事件。"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.middleware.request_id import RequestIdMiddleware
from app.packages import get_active_package

package = get_active_package()
package.setup_logging()
settings = package.get_settings()
create_response = package.create_response

app = FastAPI(title=settings.project_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIdMiddleware)

# HTTPException / 请求校验失败 / 未预料异常统一转换为 {success: false, message}
for exc_class, handler in package.exception_handlers.items():
    app.add_exception_handler(exc_class, handler)


@app.on_event("startup")
async def startup_event() -> None:
    package.on_startup(app)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    package.on_shutdown(app)


@app.get("/health")
async def health_check() -> dict:
    """提供健康检查接口，便于编排器与监控系统探活。"""
    return create_response("OK", {"status": "healthy"})


app.include_router(package.api_router, prefix=settings.api_v1_str)
