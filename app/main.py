from __future__ import annotations

import asyncio

from pathlib import Path
from fastapi import FastAPI

from core.config import SERVICE_NAME, load_config
from core.logging import init_logging
from core.stats import ServiceStats
from infra.files import ensure_dir
from infra.threadpool import create_threadpool

from services.credentials import load_credential_store
from services.upload_service import UploadService

from api.routes import router as api_router
from api.health_router import router as health_router

# /path/to/super-simple-upload/config.toml
CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.toml"


def create_app(config_path: str | Path = CONFIG_PATH) -> FastAPI:
    app = FastAPI(title=SERVICE_NAME, version="1.0.0")

    @app.on_event("startup")
    async def on_startup() -> None:
        # 配置 / keys.json 有问题直接抛异常，服务不会开始接收请求
        cfg = load_config(config_path)
        init_logging(cfg.server.log_level, log_dir=cfg.resolve(cfg.server.log_dir))

        executor = create_threadpool(cfg)
        loop = asyncio.get_running_loop()
        loop.set_default_executor(executor)

        credentials = load_credential_store(
            cfg.resolve(cfg.upload.keys_file),
            lock_timeout_s=cfg.upload.credential_lock_timeout_s,
        )
        uploads_dir = ensure_dir(cfg.resolve(cfg.upload.uploads_dir))

        app.state.cfg = cfg
        app.state.executor = executor
        app.state.credentials = credentials
        app.state.service = UploadService(credentials=credentials, uploads_dir=uploads_dir)
        app.state.stats = ServiceStats()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        executor = getattr(app.state, "executor", None)
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    app.include_router(health_router)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    cfg = load_config(CONFIG_PATH)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level=cfg.server.log_level.lower())


if __name__ == "__main__":
    run()


# uvicorn main:app --app-dir app --host 0.0.0.0 --port 8080
# 后台挂起
# nohup uvicorn main:app --app-dir app --host 0.0.0.0 --port 8080 > uvicorn.log 2>&1 &
