"""Shared builders for the API tests."""
from pathlib import Path
from uuid import uuid4

from core.security import create_user_token
from models import UserProfile

API_ROOT = Path(__file__).resolve().parents[1]


def make_user(db, *, credits: int = 0, age=None, email=None) -> UserProfile:
    user = UserProfile(
        email=email or f"user_{uuid4().hex[:12]}@example.com",
        display_name="Test User",
        age=age,
        credits=credits,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: UserProfile) -> dict:
    token = create_user_token(user.id)
    return {"Authorization": f"Bearer {token}"}


class FakeProvider:
    """Stands in for InsightProvider; records every call."""

    def __init__(self, analysis: str = "## 🌟 Overview\nYou are doing fine.", error: Exception = None):
        self.analysis = analysis
        self.error = error
        self.calls = []

    def generate(self, prompt: str, system: str) -> str:
        self.calls.append((prompt, system))
        if self.error:
            raise self.error
        return self.analysis


def alembic_config(url: str):
    """Alembic config for the API's migrations, pointed at `url`."""
    from alembic.config import Config

    cfg = Config(str(API_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(API_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    # Keep pytest's logging setup intact.
    cfg.attributes["configure_logger"] = False
    return cfg
