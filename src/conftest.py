"""Project-wide test fixtures: users, API clients and sample ticket documents."""

import io
import secrets
import string
import typing as t
from pathlib import Path

import faker
import pytest
from django.test.client import Client
from ninja_jwt.tokens import RefreshToken
from PIL import Image

from accounts.models import GigpassUser, MembershipTier
from gigpass.celery import app as celery_app


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run Celery tasks synchronously so their side effects are visible to tests.

    The Celery app reads its configuration once, so it is patched as well.
    """
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    monkeypatch.setattr(celery_app.conf, "task_always_eager", True)
    monkeypatch.setattr(celery_app.conf, "task_eager_propagates", True)


@pytest.fixture(autouse=True)
def isolated_media_root(settings: t.Any, tmp_path: Path) -> Path:
    """Point blob storage at a per-test directory."""
    media_root = tmp_path / "media"
    media_root.mkdir()
    settings.MEDIA_ROOT = str(media_root)
    return media_root


@pytest.fixture(autouse=True)
def relax_throttles(monkeypatch: pytest.MonkeyPatch) -> None:
    """Raise rate limits so that tests are never throttled."""
    for name in ("UserDefaultThrottle", "WriteThrottle", "ClaimThrottle", "DocumentUploadThrottle"):
        monkeypatch.setattr(f"common.throttling.{name}.rate", "10000/min")


class GigpassUserFactory:
    """Factory for creating GigpassUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> GigpassUser:
        username = kwargs.pop("username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(10)))
        email = kwargs.pop("email", f"{username}@user.test")
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        kwargs.setdefault("membership_tier", MembershipTier.STANDARD)
        return GigpassUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> GigpassUser:
        return self.create_user(**kwargs)


@pytest.fixture
def gigpass_user_factory() -> GigpassUserFactory:
    return GigpassUserFactory()


@pytest.fixture
def member_user(gigpass_user_factory: GigpassUserFactory) -> GigpassUser:
    """A member holding the standard tier."""
    return gigpass_user_factory(username="member", email="member@example.com")


@pytest.fixture
def other_member(gigpass_user_factory: GigpassUserFactory) -> GigpassUser:
    """A second standard-tier member."""
    return gigpass_user_factory(username="other", email="other@example.com")


@pytest.fixture
def premium_user(gigpass_user_factory: GigpassUserFactory) -> GigpassUser:
    return gigpass_user_factory(username="premium", email="premium@example.com", membership_tier=MembershipTier.PREMIUM)


@pytest.fixture
def staff_user(gigpass_user_factory: GigpassUserFactory) -> GigpassUser:
    """An event administrator."""
    return gigpass_user_factory(username="staff", email="staff@example.com", is_staff=True, membership_tier=None)


def _client_for(user: GigpassUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def member_client(member_user: GigpassUser) -> Client:
    """API client for a standard-tier member."""
    return _client_for(member_user)


@pytest.fixture
def other_member_client(other_member: GigpassUser) -> Client:
    return _client_for(other_member)


@pytest.fixture
def staff_client(staff_user: GigpassUser) -> Client:
    """API client for an event administrator."""
    return _client_for(staff_user)


# Distinct page sizes in points (width, height) and colours so pages can be told apart.
SAMPLE_PAGES: list[tuple[tuple[int, int], tuple[int, int, int]]] = [
    ((200, 300), (220, 40, 40)),
    ((300, 200), (40, 180, 60)),
    ((250, 250), (30, 60, 200)),
]


def build_pdf(pages: list[tuple[tuple[int, int], tuple[int, int, int]]]) -> bytes:
    """Build a PDF whose pages are solid-colour images of the given point sizes."""
    images = [Image.new("RGB", size, colour) for size, colour in pages]
    buffer = io.BytesIO()
    images[0].save(buffer, format="PDF", save_all=True, append_images=images[1:], resolution=72.0)
    return buffer.getvalue()


@pytest.fixture
def three_page_pdf() -> bytes:
    return build_pdf(SAMPLE_PAGES)


@pytest.fixture
def single_page_pdf() -> bytes:
    return build_pdf(SAMPLE_PAGES[:1])
