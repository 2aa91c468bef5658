import os
from datetime import datetime, timedelta
from decimal import Decimal

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from vetcare.auth.passwords import hash_password  # noqa: E402
from vetcare.database import Base  # noqa: E402
from vetcare.models import Pet, Specialization, TimeSlot, User, Veterinarian  # noqa: E402

DEFAULT_PASSWORD = 'correct-horse-battery'


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(role: str = 'pet_owner', name: str | None = None, email: str | None = None) -> User:
        counter['value'] += 1
        user = User(
            name=name or f'{role.title()} {counter["value"]}',
            email=email or f'{role}{counter["value"]}@example.com',
            hashed_password=hash_password(DEFAULT_PASSWORD),
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_veterinarian(db, make_user):
    def _make_veterinarian(
        name: str | None = None,
        bio: str | None = 'General veterinary practice',
        consultation_fee: str = '500.00',
        specializations: list[Specialization] | None = None,
    ) -> Veterinarian:
        user = make_user(role='veterinarian', name=name)
        veterinarian = Veterinarian(
            user_id=user.id,
            license_number=f'VET-{user.id:05d}',
            experience_years=5,
            bio=bio,
            consultation_fee=Decimal(consultation_fee),
        )
        veterinarian.specializations = specializations or []
        db.add(veterinarian)
        db.commit()
        db.refresh(veterinarian)
        return veterinarian

    return _make_veterinarian


@pytest.fixture
def make_pet(db):
    def _make_pet(owner: User, name: str = 'Rex', species: str = 'dog') -> Pet:
        pet = Pet(
            owner_id=owner.id,
            name=name,
            species=species,
            breed='Mixed',
            age=3,
            weight=Decimal('12.50'),
            gender='male',
        )
        db.add(pet)
        db.commit()
        db.refresh(pet)
        return pet

    return _make_pet


@pytest.fixture
def make_slot(db):
    def _make_slot(
        veterinarian: Veterinarian,
        start_time: datetime | None = None,
        minutes: int = 30,
        is_available: bool = True,
        is_blocked: bool = False,
    ) -> TimeSlot:
        start_time = start_time or (datetime.now() + timedelta(days=1)).replace(second=0, microsecond=0)
        time_slot = TimeSlot(
            veterinarian_id=veterinarian.id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=minutes),
            is_available=is_available,
            is_blocked=is_blocked,
        )
        db.add(time_slot)
        db.commit()
        db.refresh(time_slot)
        return time_slot

    return _make_slot


class RecordingPublisher:
    def __init__(self, fail: bool = False):
        self.published: list[tuple[str, int]] = []
        self.fail = fail

    def publish(self, notification_type: str, appointment_id: int) -> None:
        if self.fail:
            raise RuntimeError('broker unavailable')
        self.published.append((notification_type, appointment_id))


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def failing_publisher():
    return RecordingPublisher(fail=True)


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def client(session_factory, fake_redis, monkeypatch):
    from fastapi.testclient import TestClient

    from vetcare.auth import rate_limiter
    from vetcare.database import get_db
    from vetcare.main import app
    from vetcare.services import notifications

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(notifications, 'SessionLocal', session_factory)
    monkeypatch.setattr(rate_limiter, 'redis_client', fake_redis)
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(client, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    response = client.post('/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.text
    return {'Authorization': f'Bearer {response.json()["access_token"]}'}


@pytest.fixture
def login(client):
    def _login(user: User) -> dict:
        return auth_headers(client, user.email)

    return _login
