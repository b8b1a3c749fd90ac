"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    product = ProductFactory.create(category_id=cat.id, subcategory_id=sub.id)
    db_session.add(product)
    await db_session.commit()
"""

import uuid
from contextlib import contextmanager
from decimal import Decimal

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.store_service.storage import ImageStorage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _suffix() -> str:
    return uuid.uuid4().hex[:8]


def _unique_email() -> str:
    return f"test-{_suffix()}@test.com"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import User, UserRole

        defaults = {
            "name": "Test Customer",
            "email": _unique_email(),
            "role": UserRole.CUSTOMER,
            "is_active": True,
        }
        defaults.update(overrides)
        return User(**defaults)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CategoryFactory:
    @staticmethod
    def create(**overrides):
        from services.store_service.models import Category

        defaults = {
            "name": f"Category {_suffix()}",
            "description": "Test category",
            "is_active": True,
        }
        defaults.update(overrides)
        return Category(**defaults)


class SubcategoryFactory:
    @staticmethod
    def create(category_id: int, **overrides):
        from services.store_service.models import Subcategory

        defaults = {
            "name": f"Subcategory {_suffix()}",
            "category_id": category_id,
            "is_active": True,
        }
        defaults.update(overrides)
        return Subcategory(**defaults)


class ProductFactory:
    @staticmethod
    def create(category_id: int, subcategory_id: int, **overrides):
        from services.store_service.models import Product

        defaults = {
            "name": f"Product {_suffix()}",
            "price": Decimal("10.00"),
            "stock": 10,
            "category_id": category_id,
            "subcategory_id": subcategory_id,
            "is_active": True,
        }
        defaults.update(overrides)
        return Product(**defaults)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RecordingImageStorage(ImageStorage):
    """Image storage double that remembers what it was asked to delete."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.deleted: list[str] = []

    def delete_image(self, filename: str) -> bool:
        self.deleted.append(filename)
        return self.result


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def make_auth_user(user_id: int, role: str = "customer") -> AuthUser:
    return AuthUser(user_id=user_id, email=f"user-{user_id}@test.com", role=role)


@contextmanager
def override_auth(app, user: AuthUser):
    """Temporarily authenticate every request to ``app`` as ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous
