# tests/conftest.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from pydantic import BaseModel, Field

from dynamic_query.base.builder import QueryBuilder
from dynamic_query.base.config import QueryBuilderSettings
from dynamic_query.base.interfaces import RepositoryRegistry
from dynamic_query.base.schema import SchemaRegistry
from dynamic_query.memory.base import MemoryRepository


# --- Fixture Schema ---


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Status(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class Gender(str, Enum):
    FEMALE = "FEMALE"
    MALE = "MALE"
    OTHER = "OTHER"


class Phone(BaseModel):
    """Composite element of ContactInfo.phones."""

    number: str
    label: Optional[str] = None


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phones: List[Phone] = Field(default_factory=list)
    address: Optional[Address] = None


class PersonalInfo(BaseModel):
    firstName: str
    lastName: str
    middleName: Optional[str] = None
    gender: Optional[Gender] = None
    birthDate: Optional[datetime] = None


class Document(BaseModel):
    type: str
    url: str


class Organization(BaseModel):
    id: str
    name: str
    code: str
    isActive: bool = True
    rating: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None
    users: List["User"] = Field(default_factory=list)


class Person(BaseModel):
    id: str
    personalInfo: PersonalInfo
    contactInfo: Optional[ContactInfo] = None
    documents: List[Document] = Field(default_factory=list)
    users: List["User"] = Field(default_factory=list)


class Notification(BaseModel):
    id: str
    title: str
    isRead: bool = False
    createdAt: datetime
    user: Optional["User"] = None


class User(BaseModel):
    """Entity with one field of every kind the builder distinguishes."""

    id: str
    email: str
    userName: str
    role: Role
    status: Status = Status.ACTIVE
    tags: List[str] = Field(default_factory=list)
    loginCount: int = 0
    score: Optional[float] = None
    balance: Optional[Decimal] = None
    isVerified: bool = False
    createdAt: datetime
    preferences: Optional[Dict[str, Any]] = None
    person: Optional[Person] = None
    organization: Optional[Organization] = None
    notifications: List[Notification] = Field(default_factory=list)


Organization.model_rebuild()
Person.model_rebuild()
Notification.model_rebuild()
User.model_rebuild()

MODELS = [User, Person, Organization, Notification]
COMPOSITE_TYPES = [PersonalInfo, ContactInfo, Phone, Address, Document]


# --- Logger Fixture ---


@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_query_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})


# --- Schema and Builder Fixtures ---


@pytest.fixture(scope="session")
def schema() -> SchemaRegistry:
    return SchemaRegistry.from_models(MODELS, COMPOSITE_TYPES)


@pytest.fixture
def settings() -> QueryBuilderSettings:
    return QueryBuilderSettings()


@pytest.fixture
def builder(schema, settings) -> QueryBuilder:
    return QueryBuilder(schema, settings)


# --- Repository Fixtures ---


def make_user(**overrides) -> Dict[str, Any]:
    """A User record as the memory store keeps it."""
    record: Dict[str, Any] = {
        "id": "u-1",
        "email": "ada@example.com",
        "userName": "ada",
        "role": "admin",
        "status": "ACTIVE",
        "tags": [],
        "loginCount": 0,
        "score": None,
        "balance": None,
        "isVerified": False,
        "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "preferences": None,
        "person": None,
        "organization": None,
        "notifications": [],
    }
    record.update(overrides)
    return record


@pytest.fixture
def sample_users() -> List[Dict[str, Any]]:
    acme = {"id": "o-1", "name": "Acme", "code": "ACM", "isActive": True, "rating": 4.5}
    globex = {"id": "o-2", "name": "Globex", "code": "GLX", "isActive": False, "rating": 3.0}
    return [
        make_user(
            id="u-1",
            email="ada@example.com",
            userName="ada",
            role="admin",
            tags=["staff", "ops"],
            loginCount=12,
            score=9.5,
            isVerified=True,
            createdAt=datetime(2024, 1, 10, tzinfo=timezone.utc),
            organization=acme,
            person={
                "id": "p-1",
                "personalInfo": {"firstName": "Ada", "lastName": "Lovelace", "gender": "FEMALE"},
                "contactInfo": {
                    "email": "ada@home.example",
                    "phones": [{"number": "555-0100", "label": "home"}],
                },
                "documents": [{"type": "passport", "url": "https://docs.example/ada"}],
            },
            notifications=[
                {"id": "n-1", "title": "Welcome", "isRead": True,
                 "createdAt": datetime(2024, 1, 10, tzinfo=timezone.utc)},
            ],
        ),
        make_user(
            id="u-2",
            email="grace@example.com",
            userName="grace",
            role="editor",
            tags=["staff"],
            loginCount=3,
            score=7.0,
            createdAt=datetime(2024, 2, 15, tzinfo=timezone.utc),
            organization=acme,
            person={
                "id": "p-2",
                "personalInfo": {"firstName": "Grace", "lastName": "Hopper", "gender": "FEMALE"},
                "contactInfo": {
                    "email": None,
                    "phones": [
                        {"number": "555-0200", "label": "work"},
                        {"number": "555-0201", "label": "mobile"},
                    ],
                },
            },
        ),
        make_user(
            id="u-3",
            email="alan@example.org",
            userName="alan",
            role="viewer",
            status="SUSPENDED",
            loginCount=0,
            createdAt=datetime(2024, 3, 20, tzinfo=timezone.utc),
            organization=globex,
            person={
                "id": "p-3",
                "personalInfo": {"firstName": "Alan", "lastName": "Turing", "gender": "MALE"},
            },
            notifications=[
                {"id": "n-2", "title": "Password reset", "isRead": False,
                 "createdAt": datetime(2024, 3, 21, tzinfo=timezone.utc)},
            ],
        ),
        make_user(
            id="u-4",
            email="joan@example.com",
            userName="joan",
            role="viewer",
            tags=["ops"],
            loginCount=5,
            score=None,
            createdAt=datetime(2024, 4, 2, tzinfo=timezone.utc),
        ),
    ]


@pytest_asyncio.fixture
async def user_repository(schema, sample_users, logger) -> MemoryRepository:
    repo = MemoryRepository("User", schema)
    for record in sample_users:
        await repo.store(record, logger)
    return repo


@pytest_asyncio.fixture
async def repositories(schema, user_repository) -> RepositoryRegistry:
    registry = RepositoryRegistry(schema)
    registry.register(user_repository)
    return registry
