from datetime import datetime

from ems_api.extensions import db


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)

    code  = db.Column(db.String(32), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name  = db.Column(db.String(80), nullable=True)

    status = db.Column(db.String(16), default="active", nullable=False)  # active/inactive
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_dept_id", "department_id"),
    )

    department = db.relationship("Department", lazy="joined")

    def brief(self):
        return {
            "id": self.id,
            "code": self.code,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "department": self.department.name if self.department else None,
        }
