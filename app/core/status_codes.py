# app/core/status_codes.py

# 成功
OK = 200

# 请求类
BAD_REQUEST = 400             # 缺少 Authorization 或不是 multipart/form-data
FORBIDDEN = 403               # key 不在 keys.json 中
PAYLOAD_TOO_LARGE = 413       # Content-Length 超过 max_request_mb

# 处理链路
INTERNAL_ERROR = 500          # 写盘失败 / 读请求体失败
