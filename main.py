"""
会员支付服务入口

挂载支付路由、中间件与全局异常处理器。
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from core.settings import payment_settings
from infrastructure.database import create_tables, engine


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 开发环境自动建表；其余环境表结构由部署流程负责
    if settings.DEBUG:
        await create_tables()
        logger.info("database_tables_ensured")
    logger.info(
        "payments_service_started",
        config_id=payment_settings.alipay.config_id,
        notify_allowlist=len(payment_settings.webhook.ip_allowlist or []),
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("payments_service_stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="会员购买：支付宝当面付下单与异步通知验签",
    )

    # 后添加的先执行：CORS -> RequestID -> Logging
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)
    application.include_router(payments_routes.router, prefix="/api/v1")

    @application.get("/", tags=["Root"])
    async def root():
        return success_response(
            data={"name": settings.PROJECT_NAME, "version": settings.VERSION, "docs": "/docs"},
            message="Welcome",
        )

    @application.get("/health", tags=["Health"])
    async def health_check():
        return success_response(data={"status": "healthy"}, message="OK")

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
