"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.filevault.api.v1.endpoints import auth, files, user_files

api_router = APIRouter()
api_router.include_router(auth.router)
# 匿名路由先注册，/files/upload、/files/download 不会被 /files/{file_id} 抢先匹配
api_router.include_router(files.router)
api_router.include_router(user_files.router)
