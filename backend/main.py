"""
分支授权服务入口

启动命令:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination
from redis.exceptions import RedisError

from app.api.v1 import api_routers
from app.core import cache, logger, settings, setup_logging

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Redis 缺失时权限快照退化为每次回源，会话当前分支不持久
    cache.init()
    logger.info(
        "application_startup",
        extra={
            "project": settings.PROJECT_NAME,
            "environment": settings.ENVIRONMENT,
            "cache_enabled": cache.enabled,
        },
    )
    yield
    try:
        await cache.close()
    except RedisError as exc:
        logger.warning("cache_close_failed", extra={"error": str(exc)})
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=settings.BACKEND_CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.BACKEND_CORS_ALLOW_METHODS,
        allow_headers=settings.BACKEND_CORS_ALLOW_HEADERS,
    )
    for router in api_routers:
        application.include_router(router, prefix=settings.API_V1_STR)
    add_pagination(application)
    return application


app = create_app()


def run():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
