"""Entity type registry: table and field names for clinics, patients and reports in both stores."""

from dataclasses import dataclass

import config

TENANT_ENTITY_TYPE = "clinics"
PATIENT_ENTITY_TYPE = "patients"


@dataclass(frozen=True)
class StoreFields:
    """Field names for one entity type inside one store."""

    table: str
    id_field: str
    tenant_field: str
    display_field: str
    created_field: str
    # Only reports point at a patient
    patient_field: str | None = None

    @property
    def columns(self) -> list[str]:
        # dict.fromkeys keeps order and drops the repeat when tenant_field == id_field
        fields = [self.id_field, self.tenant_field, self.display_field, self.created_field]
        if self.patient_field is not None:
            fields.append(self.patient_field)
        return list(dict.fromkeys(fields))


@dataclass(frozen=True)
class EntityType:
    name: str
    relational: StoreFields
    key_value: StoreFields

    @property
    def is_tenant(self) -> bool:
        return self.name == TENANT_ENTITY_TYPE

    @property
    def links_patient(self) -> bool:
        return self.relational.patient_field is not None or self.key_value.patient_field is not None

    @property
    def relational_full_table_name(self) -> str:
        return f"{config.RELATIONAL_SCHEMA}.{self.relational.table}"


def _build_registry() -> dict[str, EntityType]:
    # A clinic is its own tenant: tenant field == id field in both stores.
    return {
        "clinics": EntityType(
            name="clinics",
            relational=StoreFields(
                table="clinics",
                id_field="id",
                tenant_field="id",
                display_field="name",
                created_field="created_at",
            ),
            key_value=StoreFields(
                table=config.dynamodb_table_name("clinics"),
                id_field="id",
                tenant_field="id",
                display_field="name",
                created_field="createdAt",
            ),
        ),
        "patients": EntityType(
            name="patients",
            relational=StoreFields(
                table="patients",
                id_field="id",
                tenant_field="clinic_id",
                display_field="name",
                created_field="created_at",
            ),
            key_value=StoreFields(
                table=config.dynamodb_table_name("patients"),
                id_field="id",
                tenant_field="clinicId",
                display_field="name",
                created_field="createdAt",
            ),
        ),
        "reports": EntityType(
            name="reports",
            relational=StoreFields(
                table="reports",
                id_field="id",
                tenant_field="clinic_id",
                display_field="file_name",
                created_field="created_at",
                patient_field="patient_id",
            ),
            key_value=StoreFields(
                table=config.dynamodb_table_name("reports"),
                id_field="id",
                tenant_field="clinicId",
                display_field="fileName",
                created_field="createdAt",
                patient_field="patientId",
            ),
        ),
    }


_ENTITY_TYPES: dict[str, EntityType] = _build_registry()


def get_entity_type(name: str) -> EntityType:
    key = name.strip().lower()
    if key not in _ENTITY_TYPES:
        raise ValueError(f"Unknown entity type: {name}. Available: {list(_ENTITY_TYPES.keys())}")
    return _ENTITY_TYPES[key]


def known_entity_types() -> list[str]:
    return list(_ENTITY_TYPES.keys())
