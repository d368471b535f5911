"""响应封装：构建系统统一的返回结构。"""

from typing import Any


def create_response(message: str, data: Any = None) -> dict[str, Any]:
    """按照 ``success``、``message``、``data`` 组合出统一成功响应体；``data`` 为空时省略。"""
    payload: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    return payload
