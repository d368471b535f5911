"""测试夹具：为 pytest 提供数据库、存储后端与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Generator, Optional

import pytest

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
TEST_TMP_ROOT = tempfile.mkdtemp(prefix="filevault_tests_")

# 必须在导入应用之前写入，配置对象会被缓存
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_UPLOAD_DIR"] = os.path.join(TEST_TMP_ROOT, "uploads")
os.environ["LOG_DIR"] = os.path.join(TEST_TMP_ROOT, "log")
os.environ["JWT_SECRET_KEY"] = "filevault-test-secret"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.filevault.core.dependencies import get_db, get_object_store  # noqa: E402
from app.packages.filevault.core.exceptions import StorageError  # noqa: E402
from app.packages.filevault.db import session as db_session  # noqa: E402
from app.packages.filevault.db.init_db import init_db  # noqa: E402
from app.packages.filevault.models.base import Base  # noqa: E402
from app.packages.filevault.services.storage_backends import ObjectStore  # noqa: E402


class InMemoryObjectStore(ObjectStore):
    """测试替身：内存对象存储，可按需注入失败。"""

    name = "memory"

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, Optional[str]]] = {}
        self.fail_put = False
        self.fail_url = False
        self.fail_delete = False
        self.url_calls = 0
        self.delete_calls: list[str] = []

    def put(self, key, content, content_type):
        if self.fail_put:
            raise StorageError("simulated put failure", key=key)
        self.objects[key] = (content, content_type)

    def url_for(self, key, ttl):
        if self.fail_url:
            raise StorageError("simulated presign failure", key=key)
        self.url_calls += 1
        return f"https://objects.test/{key}?expires={ttl}&sig={self.url_calls}"

    def delete(self, key):
        self.delete_calls.append(key)
        if self.fail_delete:
            raise StorageError("simulated delete failure", key=key)
        self.objects.pop(key, None)

    def locate(self, key):
        return f"memory://{key}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    shutil.rmtree(TEST_TMP_ROOT, ignore_errors=True)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def memory_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，使用启动阶段选定的本地存储后端。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def memory_client(client, memory_store):
    """与 ``client`` 相同，但存储后端替换为内存替身。"""
    app.dependency_overrides[get_object_store] = lambda: memory_store
    yield client
    app.dependency_overrides.pop(get_object_store, None)


def register_and_login(client: TestClient, email: Optional[str] = None, password: str = "secret123") -> dict[str, str]:
    """注册新用户并返回带 Bearer 令牌的请求头。"""
    email = email or f"user-{uuid.uuid4().hex[:12]}@example.com"
    reg = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert reg.status_code == 201, reg.text
    login = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    token = login.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers(client) -> dict[str, str]:
    return register_and_login(client)


@pytest.fixture()
def make_user_headers(client):
    """返回一个可多次调用的工厂，每次注册一个新用户。"""
    def _make(email: Optional[str] = None) -> dict[str, str]:
        return register_and_login(client, email)

    return _make


@pytest.fixture()
def make_owner(db_session_fixture):
    """直接在数据库中创建用户并返回其 ID，供服务层测试使用。"""
    from app.packages.filevault.core.security import get_password_hash
    from app.packages.filevault.crud.users import user_crud

    def _make() -> int:
        user = user_crud.create(
            db_session_fixture,
            {
                "email": f"owner-{uuid.uuid4().hex[:12]}@example.com",
                "hashed_password": get_password_hash("secret123"),
            },
        )
        return user.id

    return _make
