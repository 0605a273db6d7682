"""SQLAlchemy tables for the relational backend."""

from typing import Any

from sqlalchemy import JSON, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Facility(Base):
    __tablename__ = "facilities"

    facility_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    region: Mapped[str | None] = mapped_column(String)
    province: Mapped[str | None] = mapped_column(String)
    district: Mapped[str | None] = mapped_column(String)
    city: Mapped[str | None] = mapped_column(String)
    facility_type: Mapped[str | None] = mapped_column(String)
    reference_level: Mapped[str | None] = mapped_column(String)
    ownership: Mapped[str | None] = mapped_column(String)
    services: Mapped[Any] = mapped_column(JSON, nullable=True)
    contacts: Mapped[Any] = mapped_column(JSON, nullable=True)
    address_note: Mapped[str | None] = mapped_column(Text)
    data_quality: Mapped[Any] = mapped_column(JSON, nullable=True)
    map_pos: Mapped[Any] = mapped_column(JSON, nullable=True)


class Patient(Base):
    __tablename__ = "patients"

    patient_id: Mapped[str] = mapped_column(String, primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String)
    sex: Mapped[str | None] = mapped_column(String)
    dob: Mapped[str | None] = mapped_column(String)
    district_id: Mapped[str | None] = mapped_column(String)
    municipality_id: Mapped[str | None] = mapped_column(String)
    facility_id: Mapped[str | None] = mapped_column(String, index=True)


class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = (
        Index("idx_visits_facility_date", "facility_id", "date"),
        Index("idx_visits_patient", "patient_id"),
    )

    visit_id: Mapped[str] = mapped_column(String, primary_key=True)
    patient_id: Mapped[str | None] = mapped_column(String)
    facility_id: Mapped[str | None] = mapped_column(String)
    date: Mapped[str | None] = mapped_column(String)
    service: Mapped[str | None] = mapped_column(String)
    diagnosis_id: Mapped[str | None] = mapped_column(String)
    diagnosis_code: Mapped[str | None] = mapped_column(String)
    outcome: Mapped[str | None] = mapped_column(String)


class Alert(Base):
    __tablename__ = "alerts"

    alert_id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[str | None] = mapped_column(String)
    type: Mapped[str | None] = mapped_column(String)
    severity: Mapped[str | None] = mapped_column(String)
    scope: Mapped[str | None] = mapped_column(String)
    scope_id: Mapped[str | None] = mapped_column(String)
    province_id: Mapped[str | None] = mapped_column(String)
    region: Mapped[str | None] = mapped_column(String)
    message: Mapped[str | None] = mapped_column(Text)


class StockItem(Base):
    __tablename__ = "stock_catalog"

    item_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    category: Mapped[str | None] = mapped_column(String)
    unit: Mapped[str | None] = mapped_column(String)


class StockLevel(Base):
    __tablename__ = "stock_levels_monthly"

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    facility_id: Mapped[str | None] = mapped_column(String)
    item_id: Mapped[str | None] = mapped_column(String)
    month: Mapped[str | None] = mapped_column(String, index=True)
    stock_on_hand: Mapped[int | None] = mapped_column(Integer)
    min_level: Mapped[int | None] = mapped_column(Integer)
    expiry_nearest: Mapped[str | None] = mapped_column(String)


class StaffingQuota(Base):
    __tablename__ = "staff_assignments"

    facility_id: Mapped[str] = mapped_column(String, primary_key=True)
    doctors: Mapped[int | None] = mapped_column(Integer)
    nurses: Mapped[int | None] = mapped_column(Integer)
    technicians: Mapped[int | None] = mapped_column(Integer)
    support_staff: Mapped[int | None] = mapped_column(Integer)
    cooperation_program: Mapped[str | None] = mapped_column(String)


class HealthWorker(Base):
    __tablename__ = "health_workers"
    __table_args__ = (Index("idx_health_workers_cadre_status", "cadre", "status"),)

    worker_id: Mapped[str] = mapped_column(String, primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String)
    sex: Mapped[str | None] = mapped_column(String)
    dob: Mapped[str | None] = mapped_column(String)
    nationality: Mapped[str | None] = mapped_column(String)
    cadre: Mapped[str | None] = mapped_column(String)
    specialty: Mapped[str | None] = mapped_column(String)
    license_number: Mapped[str | None] = mapped_column(String)
    employment_type: Mapped[str | None] = mapped_column(String)
    cooperation_program: Mapped[str | None] = mapped_column(String)
    status: Mapped[str | None] = mapped_column(String)
    phone: Mapped[str | None] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String)


class WorkerAssignment(Base):
    __tablename__ = "worker_assignments"
    __table_args__ = (
        Index("idx_worker_assignments_facility_dept_end", "facility_id", "department", "end_date"),
        Index("idx_worker_assignments_worker", "worker_id"),
    )

    assignment_id: Mapped[str] = mapped_column(String, primary_key=True)
    worker_id: Mapped[str | None] = mapped_column(String)
    facility_id: Mapped[str | None] = mapped_column(String)
    position_title: Mapped[str | None] = mapped_column(String)
    department: Mapped[str | None] = mapped_column(String)
    start_date: Mapped[str | None] = mapped_column(String)
    end_date: Mapped[str | None] = mapped_column(String)
    fte: Mapped[float | None] = mapped_column(Float)
    shift_pattern: Mapped[str | None] = mapped_column(String)


class WorkerHistory(Base):
    __tablename__ = "worker_history"
    __table_args__ = (Index("idx_worker_history_worker", "worker_id"),)

    history_id: Mapped[str] = mapped_column(String, primary_key=True)
    worker_id: Mapped[str | None] = mapped_column(String)
    facility_id: Mapped[str | None] = mapped_column(String)
    role: Mapped[str | None] = mapped_column(String)
    start_date: Mapped[str | None] = mapped_column(String)
    end_date: Mapped[str | None] = mapped_column(String)
    notes: Mapped[str | None] = mapped_column(Text)


class WorkerCredential(Base):
    __tablename__ = "worker_credentials"
    __table_args__ = (Index("idx_worker_credentials_worker_expires", "worker_id", "expires_on"),)

    credential_id: Mapped[str] = mapped_column(String, primary_key=True)
    worker_id: Mapped[str | None] = mapped_column(String)
    type: Mapped[str | None] = mapped_column(String)
    name: Mapped[str | None] = mapped_column(String)
    institution: Mapped[str | None] = mapped_column(String)
    country: Mapped[str | None] = mapped_column(String)
    date_awarded: Mapped[str | None] = mapped_column(String)
    expires_on: Mapped[str | None] = mapped_column(String)


class EpiWeekly(Base):
    __tablename__ = "epi_weekly"
    __table_args__ = (Index("idx_epi_weekly_disease_week", "disease_id", "week_start"),)

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    district_id: Mapped[str | None] = mapped_column(String)
    province_id: Mapped[str | None] = mapped_column(String)
    region: Mapped[str | None] = mapped_column(String)
    week: Mapped[int | None] = mapped_column(Integer)
    week_start: Mapped[str | None] = mapped_column(String)
    disease_id: Mapped[str | None] = mapped_column(String)
    cases: Mapped[int | None] = mapped_column(Integer)


class District(Base):
    __tablename__ = "districts"

    district_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    province_id: Mapped[str | None] = mapped_column(String)
    region: Mapped[str | None] = mapped_column(String)


class Disease(Base):
    __tablename__ = "diseases_catalog"

    disease_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    icd_like: Mapped[str | None] = mapped_column(String)


class LabDailySummary(Base):
    __tablename__ = "lab_daily_summary"
    __table_args__ = (Index("idx_lab_summary_facility_date", "facility_id", "date"),)

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    facility_id: Mapped[str | None] = mapped_column(String)
    date: Mapped[str | None] = mapped_column(String)
    tests_ordered: Mapped[int | None] = mapped_column(Integer)
    tests_completed: Mapped[int | None] = mapped_column(Integer)
    avg_turnaround_hours: Mapped[float | None] = mapped_column(Float)
    rejected_samples: Mapped[int | None] = mapped_column(Integer)
    tests_by_category: Mapped[Any] = mapped_column(JSON, nullable=True)


class LabDiseaseIndicator(Base):
    __tablename__ = "lab_disease_indicators"
    __table_args__ = (Index("idx_lab_indicators_disease_date", "disease_id", "date"),)

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    facility_id: Mapped[str | None] = mapped_column(String)
    date: Mapped[str | None] = mapped_column(String)
    disease_id: Mapped[str | None] = mapped_column(String)
    test_type: Mapped[str | None] = mapped_column(String)
    total_tested: Mapped[int | None] = mapped_column(Integer)
    total_positive: Mapped[int | None] = mapped_column(Integer)


class LabAlert(Base):
    __tablename__ = "lab_alerts"
    __table_args__ = (Index("idx_lab_alerts_date", "date"),)

    alert_id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[str | None] = mapped_column(String)
    type: Mapped[str | None] = mapped_column(String)
    severity: Mapped[str | None] = mapped_column(String)
    facility_id: Mapped[str | None] = mapped_column(String)
    message: Mapped[str | None] = mapped_column(Text)


TABLES = Base.metadata.tables
