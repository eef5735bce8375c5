"""Shared fixtures: in-memory database, temporary upload root, app client with overrides."""

import io
import shutil
import tempfile
import unittest
from collections.abc import Generator

from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.security import TokenService, get_token_service, hash_password
from app.main import app
from app.models import Base, Role, User
from app.services.uploads import ImageStore, get_image_store

TEST_SECRET = "test-secret"
TEST_PASSWORD = "secret1"


def make_image(fmt: str = "PNG", size: tuple[int, int] = (32, 32), mode: str = "RGB") -> bytes:
    """Encode a solid-colour image in the given format."""
    colors = {"RGB": (200, 30, 30), "RGBA": (200, 30, 30, 128)}
    color = colors.get(mode, 128)
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


class ApiTestCase(unittest.TestCase):
    """TestClient against the real app with database, tokens, uploads and settings overridden."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.addCleanup(self.engine.dispose)
        self.SessionFactory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

        self.upload_root = tempfile.mkdtemp(prefix="stockroom-test-")
        self.addCleanup(shutil.rmtree, self.upload_root, ignore_errors=True)
        self.images = self.make_image_store()
        self.tokens = TokenService(TEST_SECRET)
        self.settings = Settings(BCRYPT_ROUNDS=4)

        def override_db() -> Generator[Session, None, None]:
            db = self.SessionFactory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_token_service] = lambda: self.tokens
        app.dependency_overrides[get_image_store] = lambda: self.images
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.addCleanup(app.dependency_overrides.clear)

        self.client = TestClient(app, raise_server_exceptions=False)
        self.addCleanup(self.client.close)

    def make_image_store(self) -> ImageStore:
        return ImageStore(self.upload_root)

    def create_user(
        self,
        email: str = "user@example.com",
        password: str = TEST_PASSWORD,
        name: str = "Test User",
        role: Role = Role.USER,
        is_active: bool = True,
        avatar: str | None = None,
    ) -> User:
        with self.SessionFactory() as db:
            user = User(
                email=email,
                password_hash=hash_password(password, rounds=4),
                name=name,
                role=role.value,
                is_active=is_active,
                avatar=avatar,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            db.expunge(user)
        return user

    def auth_headers(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens.issue(user.id, user.email, user.role)}"}

    def files_in(self, namespace: str) -> list[str]:
        directory = self.images.root / namespace
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir())
