"""
多个请求同时上传：请求之间并发，请求内部 part 串行。
"""

import asyncio

from infra.multipart import UploadPart
from services.credentials import CredentialStore
from services.upload_service import UploadService


async def slow_chunks(events: list, task_id: int, tag: bytes, n: int, delay: float):
    for _ in range(n):
        await asyncio.sleep(delay)
        events.append(task_id)
        yield tag


async def one_request(service: UploadService, events: list, task_id: int):
    async def parts():
        for i in range(2):
            tag = f"{task_id}-{i};".encode()
            yield UploadPart(
                filename=f"t{task_id}_{i}.txt",
                field_name="file",
                chunks=slow_chunks(events, task_id, tag, 5, 0.01),
            )

    return await service.handle("abc123", parts())


def test_concurrent_requests(tmp_path):
    """
    场景：8 个请求同时到达，每个请求 2 个 part，每个 part 5 个 chunk，每个 chunk 10ms

    预期：
    - 全部 200，文件各自独立
    - 不同请求的 chunk 交错写入，而不是一个请求写完再轮到下一个
    """
    total_tasks = 8
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    service = UploadService(CredentialStore({"abc123": "alice"}), uploads)
    events = []

    async def run():
        return await asyncio.gather(*[one_request(service, events, i) for i in range(total_tasks)])

    results = asyncio.run(run())

    assert all(r.status_code == 200 for r in results)
    for task_id, r in enumerate(results):
        names = r.body.split("\n")
        assert len(names) == 2
        for i, name in enumerate(names):
            assert (uploads / name).read_bytes() == f"{task_id}-{i};".encode() * 5

    assert len(list(uploads.iterdir())) == total_tasks * 2
    assert len(events) == total_tasks * 2 * 5
    # 串行执行时只会切换 total_tasks - 1 次
    switches = sum(1 for a, b in zip(events, events[1:]) if a != b)
    assert switches > total_tasks
