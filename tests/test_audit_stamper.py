"""
Tests for audit stamping of entity graphs.
"""

from datetime import timedelta

from data_core.services.crud.audit_stamper import (
    normalize_tenant_id,
    set_audit_properties,
    stamp,
    stamp_many,
)
from tests.conftest import T0, make_appointment, make_patient


LATER = T0 + timedelta(hours=3)


class TestStampNewEntity:
    def test_sets_created_and_updated(self):
        patient = make_patient()

        stamp(patient, actor_id=100, tenant_id=1, now=T0)

        assert patient.created_by == 100
        assert patient.created_on == T0
        assert patient.updated_by == 100
        assert patient.updated_on == T0
        assert patient.tenant_id == 1

    def test_id_zero_counts_as_new(self):
        patient = make_patient(id=0)

        stamp(patient, actor_id=7, tenant_id=1, now=T0)

        assert patient.created_by == 7
        assert patient.created_on == T0

    def test_resets_soft_delete_state(self):
        patient = make_patient(is_deleted=True, deleted_by=9, deleted_on=T0)

        stamp(patient, actor_id=100, tenant_id=1, now=LATER)

        assert patient.is_deleted is False
        assert patient.deleted_by is None
        assert patient.deleted_on is None


class TestStampExistingEntity:
    def test_creation_fields_preserved(self):
        patient = make_patient(id=42, created_by=100, created_on=T0)

        stamp(patient, actor_id=105, tenant_id=1, now=LATER)

        assert patient.created_by == 100
        assert patient.created_on == T0
        assert patient.updated_by == 105
        assert patient.updated_on == LATER

    def test_second_stamp_changes_only_update_fields(self):
        patient = make_patient()
        stamp(patient, actor_id=100, tenant_id=1, now=T0)
        patient.id = 42

        stamp(patient, actor_id=105, tenant_id=1, now=LATER)

        assert (patient.created_by, patient.created_on) == (100, T0)
        assert (patient.updated_by, patient.updated_on) == (105, LATER)


class TestRecursiveStamping:
    def test_parent_and_children_stamped_consistently(self):
        first, second = make_appointment(), make_appointment(reason="Follow-up")
        patient = make_patient(appointments=[first, second])

        stamp(patient, actor_id=100, tenant_id=3, now=T0)

        for node in (patient, first, second):
            assert node.created_by == 100
            assert node.created_on == T0
            assert node.updated_by == 100
            assert node.updated_on == T0
            assert node.tenant_id == 3
            assert node.is_deleted is False

    def test_children_visited_before_parent(self):
        first, second = make_appointment(), make_appointment()
        patient = make_patient(appointments=[first, second])

        assert list(patient.walk()) == [first, second, patient]

    def test_new_child_of_existing_parent_gets_creation_fields(self):
        child = make_appointment()
        patient = make_patient(id=5, created_by=1, created_on=T0, appointments=[child])

        stamp(patient, actor_id=105, tenant_id=1, now=LATER)

        assert (patient.created_by, patient.created_on) == (1, T0)
        assert (child.created_by, child.created_on) == (105, LATER)

    def test_cycle_visited_once(self):
        child = make_appointment()
        patient = make_patient(appointments=[child])
        # Nested entity pointing back at the root
        child.__children__ = ("patient",)

        nodes = list(patient.walk())

        assert nodes.count(patient) == 1
        assert nodes.count(child) == 1


class TestTenantHandling:
    def test_tenant_zero_stored_as_none(self):
        patient = make_patient()

        stamp(patient, actor_id=100, tenant_id=0, now=T0)

        assert patient.tenant_id is None

    def test_normalize_tenant_id(self):
        assert normalize_tenant_id(None) is None
        assert normalize_tenant_id(0) is None
        assert normalize_tenant_id(-1) is None
        assert normalize_tenant_id(8) == 8

    def test_set_audit_properties_leaves_tenant(self):
        child = make_appointment(tenant_id=4)
        patient = make_patient(tenant_id=4, appointments=[child])

        set_audit_properties(patient, actor_id=100, now=T0)

        assert patient.tenant_id == 4
        assert child.tenant_id == 4
        assert child.updated_by == 100
        assert patient.created_on == T0


class TestFailureHandling:
    def test_none_entity_is_ignored(self):
        stamp(None, actor_id=1, tenant_id=1, now=T0)
        set_audit_properties(None, actor_id=1, now=T0)

    def test_traversal_error_is_logged_not_raised(self, caplog):
        patient = make_patient()
        patient.children = lambda: [object()]

        stamp(patient, actor_id=100, tenant_id=1, now=T0)

        records = [getattr(r, "extra_data", None) or {} for r in caplog.records]
        assert any(
            data.get("layer") == "AuditStamper" and data.get("method") == "stamp"
            for data in records
        )

    def test_stamp_many_uses_one_timestamp(self):
        patients = [make_patient(mrn="A"), make_patient(mrn="B")]

        stamp_many(patients, actor_id=100, tenant_id=1, now=T0)

        assert {p.updated_on for p in patients} == {T0}
