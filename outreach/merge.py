"""
Role-partitioned merge of entry payloads.

An entry is made of three field groups. Each group is parsed into its own
model, and ``apply_group`` folds a parsed group into a plain mapping of
column values, stamping that group's attribution column. Nothing here
touches the database; the request handler persists ``MergeResult.changes``.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, ClassVar, Dict, List, Literal, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import EntryPermissionError, EntryValidationError
from .policy import FieldGroup, can_write, to_role

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class GroupFields(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )

    group: ClassVar[FieldGroup]
    attribution: ClassVar[str]

    @classmethod
    def payload_keys(cls) -> Tuple[str, ...]:
        keys = []
        for name, info in cls.model_fields.items():
            keys.append(name)
            if info.alias and info.alias != name:
                keys.append(info.alias)
        return tuple(keys)

    def columns(self) -> Dict[str, Any]:
        return self.model_dump()


class DemographicFields(GroupFields):
    group: ClassVar[FieldGroup] = FieldGroup.DEMOGRAPHIC
    attribution: ClassVar[str] = "demographic_created_by_id"

    first_name: str = Field(min_length=1, max_length=120)
    middle_name: str = Field(min_length=1, max_length=120)
    surname: str = Field(min_length=1, max_length=120)
    gender: Literal["male", "female"]
    marital_status: Literal["single", "married", "divorced", "widowed"]
    religion: str = Field(min_length=1, max_length=120)
    date_of_birth: date
    phone_number: str = Field(min_length=1, max_length=40)
    occupation: str = Field(min_length=1, max_length=120)

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _iso_date_only(cls, v):
        if isinstance(v, date):
            return v
        if isinstance(v, str) and ISO_DATE.match(v.strip()):
            return v.strip()
        raise ValueError("Date of birth must be in YYYY-MM-DD format")


class HealthFields(GroupFields):
    group: ClassVar[FieldGroup] = FieldGroup.HEALTH
    attribution: ClassVar[str] = "health_created_by_id"

    bp: Optional[str] = Field(default=None, max_length=20)
    temp: Optional[float] = Field(default=None, allow_inf_nan=False)
    weight: Optional[float] = Field(default=None, allow_inf_nan=False)

    @field_validator("bp", "temp", "weight", mode="before")
    @classmethod
    def _blank_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("temp", "weight", mode="before")
    @classmethod
    def _not_a_flag(cls, v):
        # bool is an int subclass and would otherwise coerce to 1.0/0.0
        if isinstance(v, bool):
            raise ValueError("Must be a number")
        return v


class MedicalFields(GroupFields):
    group: ClassVar[FieldGroup] = FieldGroup.MEDICAL
    attribution: ClassVar[str] = "medical_created_by_id"

    diagnosis: Optional[str] = None
    treatment: Optional[str] = None

    @field_validator("diagnosis", "treatment", mode="before")
    @classmethod
    def _blank_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


GROUP_MODELS: Dict[FieldGroup, Type[GroupFields]] = {
    FieldGroup.DEMOGRAPHIC: DemographicFields,
    FieldGroup.HEALTH: HealthFields,
    FieldGroup.MEDICAL: MedicalFields,
}

ENTRY_COLUMNS: Tuple[str, ...] = tuple(
    name for model in GROUP_MODELS.values() for name in model.model_fields
) + (
    "created_by_id",
    "demographic_created_by_id",
    "health_created_by_id",
    "medical_created_by_id",
)


@dataclass(frozen=True)
class MergeResult:
    values: Dict[str, Any]
    changes: Dict[str, Any]
    applied: Tuple[FieldGroup, ...]
    skipped: List[Dict[str, str]] = field(default_factory=list)


def snapshot(entry: Any) -> Dict[str, Any]:
    """Column values of an ORM entry (or any object with the same attributes)."""
    return {name: getattr(entry, name) for name in ENTRY_COLUMNS}


def is_supplied(model: Type[GroupFields], payload: Mapping[str, Any]) -> bool:
    return any(key in payload for key in model.payload_keys())


def parse_group(
    model: Type[GroupFields], payload: Mapping[str, Any]
) -> Tuple[Optional[GroupFields], List[Dict[str, str]]]:
    try:
        return model.model_validate(payload), []
    except ValidationError as exc:
        return None, validation_messages(exc)


def validation_messages(exc: ValidationError) -> List[Dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def apply_group(values: Mapping[str, Any], fields: GroupFields, user_id: Any) -> Dict[str, Any]:
    merged = dict(values)
    merged.update(fields.columns())
    merged[fields.attribution] = user_id
    return merged


def merge_entry(
    current: Optional[Mapping[str, Any]],
    payload: Mapping[str, Any],
    role: Any,
    user_id: Any,
) -> MergeResult:
    """
    Merge ``payload`` into ``current`` (``None`` when creating) for a caller.

    Only groups the role may write and the payload supplies are considered;
    of those, the ones that validate are applied. Creating requires the
    demographic group; updating requires at least one applied group.
    """
    creating = current is None
    r = to_role(role)
    role_name = r.value if r is not None else str(role)

    if creating and not can_write(r, FieldGroup.DEMOGRAPHIC):
        raise EntryPermissionError(
            "You do not have permission to create entries",
            [{"field": FieldGroup.DEMOGRAPHIC.value,
              "message": f"Role '{role_name}' cannot write demographic fields"}],
        )

    values: Dict[str, Any] = dict.fromkeys(ENTRY_COLUMNS) if creating else dict(current)
    changes: Dict[str, Any] = {}
    applied: List[FieldGroup] = []
    denied: List[Dict[str, str]] = []
    invalid: List[Dict[str, str]] = []
    demographic_errors: List[Dict[str, str]] = []

    for group, model in GROUP_MODELS.items():
        required = creating and group is FieldGroup.DEMOGRAPHIC
        if not required and not is_supplied(model, payload):
            continue
        if not can_write(r, group):
            denied.append({
                "field": group.value,
                "message": f"Role '{role_name}' cannot write {group.value} fields",
            })
            continue
        fields, errors = parse_group(model, payload)
        if fields is None:
            invalid.extend(errors)
            if group is FieldGroup.DEMOGRAPHIC:
                demographic_errors = errors
            continue
        values = apply_group(values, fields, user_id)
        changes = apply_group(changes, fields, user_id)
        applied.append(group)

    if creating:
        if FieldGroup.DEMOGRAPHIC not in applied:
            raise EntryValidationError("Validation failed", demographic_errors)
        values["created_by_id"] = user_id
        changes["created_by_id"] = user_id
    elif not applied:
        if invalid:
            raise EntryValidationError("Validation failed", invalid)
        if denied:
            raise EntryPermissionError("You do not have permission to edit the supplied fields", denied)
        raise EntryValidationError("No writable fields supplied", [])

    return MergeResult(values=values, changes=changes, applied=tuple(applied), skipped=denied + invalid)
