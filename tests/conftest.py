from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from ems_api import create_app
from ems_api.config import TestingConfig
from ems_api.extensions import db
from ems_api.models.attendance import Attendance
from ems_api.models.employee import Employee
from ems_api.models.master import Department


@pytest.fixture(scope="function")
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


def token_for(identity, *roles):
    return create_access_token(identity=str(identity), additional_claims={"roles": list(roles)})


def auth(identity, *roles):
    return {"Authorization": f"Bearer {token_for(identity, *roles)}"}


@pytest.fixture
def hr_headers(app):
    return auth(9000, "hr")


@pytest.fixture
def admin_headers(app):
    return auth(9001, "admin")


def make_department(name):
    d = Department(name=name)
    db.session.add(d)
    db.session.commit()
    return d


def make_employee(code, department=None):
    e = Employee(
        code=code,
        email=f"{code.lower()}@example.com",
        first_name=code,
        last_name="Test",
        department_id=department.id if department else None,
    )
    db.session.add(e)
    db.session.commit()
    return e


def mark(employee, day: date, status, **kw):
    rec = Attendance(employee_id=employee.id, work_date=day, status=status, **kw)
    db.session.add(rec)
    db.session.commit()
    return rec


@pytest.fixture
def two_day_scenario(app):
    """Two employees; day 1: present + absent, day 2: late + present."""
    eng = make_department("Engineering")
    a = make_employee("E001", eng)
    b = make_employee("E002", eng)
    mark(a, date(2025, 1, 1), "present")
    mark(b, date(2025, 1, 1), "absent")
    mark(a, date(2025, 1, 2), "late")
    mark(b, date(2025, 1, 2), "present")
    return {"department": eng, "employees": [a, b]}
