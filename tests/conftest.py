# tests/conftest.py
import asyncio
import sys
import uuid

import pytest

from app.happypath.models.db_models import User, Role

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def make_user(role: Role, name: str = None, **kwargs) -> User:
    """Testler için verilen rolde bir User nesnesi oluşturur."""
    user_id = kwargs.pop("user_id", uuid.uuid4())
    return User(
        user_id=user_id,
        name=name or f"Test {role.value.title()}",
        email=f"{role.value}-{user_id.hex[:8]}@example.com",
        role=role,
        **kwargs
    )


@pytest.fixture
def student_user() -> User:
    return make_user(Role.STUDENT, "Ada Student")

@pytest.fixture
def other_student_user() -> User:
    return make_user(Role.STUDENT, "Other Student")

@pytest.fixture
def parent_user() -> User:
    return make_user(Role.PARENT, "Grace Parent")

@pytest.fixture
def teacher_user() -> User:
    return make_user(Role.TEACHER, "Dr. Ada Lovelace")

@pytest.fixture
def other_teacher_user() -> User:
    return make_user(Role.TEACHER, "Dr. Grace Hopper")

@pytest.fixture
def admin_user() -> User:
    return make_user(Role.ADMIN, "System Admin")

@pytest.fixture
def user_factory():
    """Belirli bir rolde ek kullanıcılar üretmek için make_user'ı fixture olarak sunar."""
    return make_user
