from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """
    健康检查接口，返回服务状态信息

    应答参数说明：
    | 参数名              | 类型           | 说明                                           |
    |---------------------|---------------|------------------------------------------------|
    | status              | string        | 服务状态，固定返回 "healthy"                    |
    | version             | string        | 服务版本号                                      |
    | start_time          | string        | 服务启动时间（格式：YYYY-MM-DD HH:MM:SS）       |
    | uptime_seconds      | int           | 运行时长（秒）                                  |
    | uptime_formatted    | string        | 格式化的运行时长（如："1d 2h 30m 15s"）         |
    | total_requests      | int           | 接收到的上传请求总数                            |
    | success_count       | int           | 全部 part 写盘成功的请求数                      |
    | failed_count        | int           | 写盘/读请求体失败（500）的请求数                |
    | rejected_count      | int           | 400/403/413 的请求数                            |
    | files_written       | int           | 成功写盘的文件数                                |
    | bytes_written       | int           | 成功写盘的字节数                                |
    | processing_count    | int           | 正在处理中的请求数量                            |
    | processing_ids      | array[string] | 正在处理中的 request_id 列表（按字母顺序排序）  |
    """
    cfg = request.app.state.cfg
    stats = request.app.state.stats
    snapshot = stats.get_snapshot()

    return JSONResponse(status_code=200, content={
        "status": "healthy",
        "version": cfg.server.version,
        **snapshot
    })
