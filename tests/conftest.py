import os

# La app crea sus tablas al importarse; en pruebas que sea en memoria
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from passlib.hash import sha256_crypt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import caltrack.models  # noqa: F401
from caltrack.api.auth import get_current_user
from caltrack.db.base import Base
from caltrack.db.session import get_db
from caltrack.main import app
from caltrack.models.department import Department
from caltrack.models.equipment import Equipment
from caltrack.models.location import Location
from caltrack.models.plant import Plant
from caltrack.models.user import User
from caltrack.schemas.tracking import CheckInInput

# Pocas rondas: los hashes solo se usan en pruebas
_fast_hash = sha256_crypt.using(rounds=1000)
PASSWORD_HASH = _fast_hash.hash("secreto123")
PIN_HASHES = {pin: _fast_hash.hash(pin) for pin in ("1234", "4321", "9999")}


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class Seed:
    """Catálogo mínimo: dos departamentos con una ubicación cada uno."""

    def __init__(self, db):
        self.plant = Plant(name="Planta Norte", address="Av. Industrial 100")
        db.add(self.plant)
        db.flush()

        self.metrology = Department(name="Metrología", plant_id=self.plant.id)
        self.production = Department(name="Producción", plant_id=self.plant.id)
        db.add_all([self.metrology, self.production])
        db.flush()

        self.lab = Location(name="Laboratorio A", department_id=self.metrology.id)
        self.line = Location(name="Línea B", department_id=self.production.id)
        db.add_all([self.lab, self.line])
        db.flush()

        self.technician = self._user(db, "T-001", "Ana", "Ruiz", "TECHNICIAN", self.metrology, "1234")
        self.admin = self._user(db, "A-001", "Luis", "Pérez", "ADMIN", self.metrology, None)
        self.employee = self._user(db, "E-100", "Marta", "Soto", "EMPLOYEE", self.metrology, "4321")
        self.other_technician = self._user(
            db, "T-002", "Jorge", "Díaz", "TECHNICIAN", self.production, "9999"
        )
        db.commit()

    def _user(self, db, employee_id, first, last, rol, department, pin):
        user = User(
            employee_id=employee_id,
            first_name=first,
            last_name=last,
            email=f"{employee_id.lower()}@planta.test",
            password_hash=PASSWORD_HASH,
            pin_hash=PIN_HASHES[pin] if pin else None,
            rol=rol,
            department_id=department.id,
            plant_id=self.plant.id,
            activo=True,
        )
        db.add(user)
        db.flush()
        return user


@pytest.fixture()
def seed(db):
    return Seed(db)


@pytest.fixture()
def make_equipment(db, seed):
    def _make(serial="EQ-100", owner=None, **kwargs):
        equipment = Equipment(
            serial_number=serial,
            description=kwargs.pop("description", "Calibrador vernier"),
            manufacturer=kwargs.pop("manufacturer", "Mitutoyo"),
            model=kwargs.pop("model", "CD-6"),
            owner_id=owner.id if owner else None,
            plant_id=seed.plant.id,
            department_id=seed.metrology.id,
            location_id=seed.lab.id,
            **kwargs,
        )
        db.add(equipment)
        db.commit()
        return equipment

    return _make


@pytest.fixture()
def new_check_in(seed):
    """Payload de registro nuevo en el laboratorio de Metrología."""

    def _payload(serial="SN-001", **overrides):
        data = dict(
            is_new_registration=True,
            serial_number=serial,
            manufacturer="Fluke",
            model="87V",
            description="Multímetro digital",
            technician_id=seed.technician.id,
            location_id=seed.lab.id,
            department_id=seed.metrology.id,
            cal_date=date(2025, 1, 1),
            cal_due_date=date(2025, 12, 31),
        )
        data.update(overrides)
        return CheckInInput(**data)

    return _payload


@pytest.fixture()
def acting_user():
    return {"user": None}


@pytest.fixture()
def client(db, seed, acting_user):
    def override_get_db():
        yield db

    acting_user["user"] = seed.technician
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: acting_user["user"]
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

