"""
Tests for soft delete marking and restore.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from data_core.services.crud.soft_delete import (
    clear_deleted,
    filter_active,
    filter_deleted,
    mark_deleted,
)
from shared.utils.exceptions import TraversalError
from tests.conftest import T0, insert_patients, make_appointment, make_patient
from tests.models import Patient


class TestMarkDeleted:
    def test_marks_whole_graph(self):
        first, second = make_appointment(), make_appointment()
        patient = make_patient(appointments=[first, second])

        mark_deleted(patient, actor_id=110, now=T0)

        for node in (patient, first, second):
            assert node.is_deleted is True
            assert node.deleted_by == 110
            assert node.deleted_on == T0

    def test_returns_same_entity(self):
        patient = make_patient()
        assert mark_deleted(patient, actor_id=1, now=T0) is patient

    def test_audit_creation_untouched(self):
        patient = make_patient(id=3, created_by=100, created_on=T0, updated_by=105, updated_on=T0)

        mark_deleted(patient, actor_id=110, now=T0 + timedelta(days=1))

        assert (patient.created_by, patient.updated_by) == (100, 105)

    def test_traversal_failure_raises(self):
        patient = make_patient()
        patient.children = lambda: [object()]

        with pytest.raises(TraversalError):
            mark_deleted(patient, actor_id=1, now=T0)


class TestClearDeleted:
    def test_restores_graph(self):
        child = make_appointment()
        patient = make_patient(appointments=[child])
        mark_deleted(patient, actor_id=110, now=T0)

        clear_deleted(patient)

        for node in (patient, child):
            assert node.is_deleted is False
            assert node.deleted_by is None
            assert node.deleted_on is None
            assert node.is_soft_deleted is False


class TestQueryHelpers:
    @pytest.mark.asyncio
    async def test_filter_active_and_deleted(self, db_session):
        deleted = make_patient(mrn="gone")
        mark_deleted(deleted, actor_id=110, now=T0)
        await insert_patients(db_session, make_patient(mrn="kept"), deleted)

        active = (await db_session.scalars(filter_active(select(Patient), Patient))).all()
        gone = (await db_session.scalars(filter_deleted(select(Patient), Patient))).all()
        everything = (await db_session.scalars(filter_active(select(Patient), Patient, include_deleted=True))).all()

        assert [p.mrn for p in active] == ["kept"]
        assert [p.mrn for p in gone] == ["gone"]
        assert len(everything) == 2
