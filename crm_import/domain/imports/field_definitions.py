"""
Canonical field definitions for every importable entity type.

Each entity (contacts, leads, clients) exposes an ordered, immutable list of
``FieldDefinition`` objects. The order matters: the column mapper walks the
fields in this order and the first best-scoring field wins ties.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FieldType(str, Enum):
    STRING = "string"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    DATE = "date"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    ENUM = "enum"
    TAGS = "tags"


class EntityType(str, Enum):
    CONTACTS = "contacts"
    LEADS = "leads"
    CLIENTS = "clients"


class UnknownEntityTypeError(ValueError):
    """Raised when a caller asks for an entity type that has no field definitions."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type: {entity_type}")


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    label: str
    type: FieldType
    required: bool = False
    aliases: Tuple[str, ...] = field(default_factory=tuple)
    enum_values: Optional[Tuple[str, ...]] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


def _field(name, label, field_type, *, required=False, aliases=(), enum_values=None,
           max_length=None, min_value=None, max_value=None) -> FieldDefinition:
    return FieldDefinition(
        name=name,
        label=label,
        type=field_type,
        required=required,
        aliases=tuple(aliases),
        enum_values=tuple(enum_values) if enum_values is not None else None,
        max_length=max_length,
        min_value=min_value,
        max_value=max_value,
    )


CONTACT_FIELDS: Tuple[FieldDefinition, ...] = (
    _field("first_name", "First Name", FieldType.STRING, required=True, max_length=100,
           aliases=["first name", "firstname", "fname", "given name", "given_name", "forename"]),
    _field("last_name", "Last Name", FieldType.STRING, max_length=100,
           aliases=["last name", "lastname", "lname", "surname", "family name", "family_name"]),
    _field("email", "Email", FieldType.EMAIL,
           aliases=["email", "email address", "e-mail", "mail", "primary email", "primary_email"]),
    _field("secondary_email", "Secondary Email", FieldType.EMAIL,
           aliases=["secondary email", "secondary_email", "other email", "alternate email", "alt email"]),
    _field("phone", "Phone", FieldType.PHONE,
           aliases=["phone", "phone number", "telephone", "tel", "primary phone", "main phone"]),
    _field("mobile_phone", "Mobile Phone", FieldType.PHONE,
           aliases=["mobile", "mobile phone", "cell", "cell phone", "cellphone", "mobile_phone"]),
    _field("work_phone", "Work Phone", FieldType.PHONE,
           aliases=["work phone", "work_phone", "office phone", "business phone"]),
    _field("job_title", "Job Title", FieldType.STRING, max_length=150,
           aliases=["job title", "title", "position", "role", "job_title", "designation"]),
    _field("department", "Department", FieldType.STRING, max_length=100,
           aliases=["department", "dept", "division", "team"]),
    _field("company", "Company", FieldType.STRING, max_length=200,
           aliases=["company", "company name", "organization", "org", "business", "employer"]),
    _field("linkedin_url", "LinkedIn URL", FieldType.URL,
           aliases=["linkedin", "linkedin url", "linkedin_url", "linkedin profile"]),
    _field("twitter_handle", "Twitter Handle", FieldType.STRING, max_length=50,
           aliases=["twitter", "twitter handle", "twitter_handle", "x handle", "@"]),
    _field("address", "Address", FieldType.STRING, max_length=500,
           aliases=["address", "street", "street address", "address line 1", "address_line_1"]),
    _field("city", "City", FieldType.STRING, max_length=100,
           aliases=["city", "town", "municipality"]),
    _field("state", "State/Province", FieldType.STRING, max_length=100,
           aliases=["state", "province", "region", "state/province"]),
    _field("postal_code", "Postal Code", FieldType.STRING, max_length=20,
           aliases=["postal code", "zip", "zip code", "zipcode", "postcode", "postal_code"]),
    _field("country", "Country", FieldType.STRING, max_length=100,
           aliases=["country", "nation"]),
    _field("timezone", "Timezone", FieldType.STRING, max_length=50,
           aliases=["timezone", "time zone", "tz"]),
    _field("preferred_contact_method", "Preferred Contact Method", FieldType.ENUM,
           aliases=["preferred contact", "contact method", "preferred_contact_method", "contact preference"],
           enum_values=["email", "phone", "sms", "mail"]),
    _field("status", "Status", FieldType.ENUM,
           aliases=["status", "contact status"],
           enum_values=["active", "inactive", "archived"]),
    _field("contact_type", "Contact Type", FieldType.ENUM,
           aliases=["contact type", "type", "category", "contact_type"],
           enum_values=["personal", "business", "vendor", "partner", "other"]),
    _field("tags", "Tags", FieldType.TAGS,
           aliases=["tags", "labels", "categories"]),
    _field("source", "Source", FieldType.STRING, max_length=100,
           aliases=["source", "lead source", "origin", "acquisition source"]),
    _field("notes", "Notes", FieldType.STRING, max_length=5000,
           aliases=["notes", "comments", "description", "remarks"]),
)

LEAD_FIELDS: Tuple[FieldDefinition, ...] = (
    _field("name", "Name", FieldType.STRING, required=True, max_length=200,
           aliases=["name", "lead name", "full name", "fullname", "contact name"]),
    _field("email", "Email", FieldType.EMAIL,
           aliases=["email", "email address", "e-mail", "mail"]),
    _field("phone", "Phone", FieldType.PHONE,
           aliases=["phone", "phone number", "telephone", "tel", "mobile", "cell"]),
    _field("company", "Company", FieldType.STRING, max_length=200,
           aliases=["company", "company name", "organization", "org", "business"]),
    _field("job_title", "Job Title", FieldType.STRING, max_length=150,
           aliases=["job title", "title", "position", "role", "job_title"]),
    _field("website", "Website", FieldType.URL,
           aliases=["website", "web", "url", "site", "homepage"]),
    _field("address", "Address", FieldType.STRING, max_length=500,
           aliases=["address", "street", "street address"]),
    _field("city", "City", FieldType.STRING, max_length=100,
           aliases=["city", "town"]),
    _field("country", "Country", FieldType.STRING, max_length=100,
           aliases=["country", "nation"]),
    _field("status", "Status", FieldType.ENUM,
           aliases=["status", "lead status", "stage"],
           enum_values=["new", "contacted", "qualified", "proposal", "negotiation", "won", "lost"]),
    _field("estimated_value", "Estimated Value", FieldType.CURRENCY,
           aliases=["estimated value", "value", "deal value", "opportunity value", "amount"]),
    _field("probability", "Probability", FieldType.PERCENTAGE, min_value=0, max_value=100,
           aliases=["probability", "win probability", "likelihood", "chance"]),
    _field("priority", "Priority", FieldType.ENUM,
           aliases=["priority", "importance", "urgency"],
           enum_values=["low", "medium", "high", "urgent"]),
    _field("score", "Lead Score", FieldType.NUMBER, min_value=0, max_value=100,
           aliases=["score", "lead score", "rating"]),
    _field("source", "Source", FieldType.STRING, max_length=100,
           aliases=["source", "lead source", "origin", "channel"]),
    _field("campaign", "Campaign", FieldType.STRING, max_length=200,
           aliases=["campaign", "marketing campaign", "campaign name"]),
    _field("industry", "Industry", FieldType.STRING, max_length=100,
           aliases=["industry", "sector", "vertical"]),
    _field("company_size", "Company Size", FieldType.STRING, max_length=50,
           aliases=["company size", "employees", "headcount", "size"]),
    _field("next_follow_up", "Next Follow-up", FieldType.DATE,
           aliases=["next follow up", "follow up", "next_follow_up", "follow up date", "callback"]),
    _field("expected_close_date", "Expected Close Date", FieldType.DATE,
           aliases=["expected close", "close date", "expected_close_date", "closing date"]),
    _field("notes", "Notes", FieldType.STRING, max_length=5000,
           aliases=["notes", "comments", "description", "remarks"]),
    _field("requirements", "Requirements", FieldType.STRING, max_length=5000,
           aliases=["requirements", "needs", "specifications"]),
    _field("tags", "Tags", FieldType.TAGS,
           aliases=["tags", "labels"]),
)

CLIENT_FIELDS: Tuple[FieldDefinition, ...] = (
    _field("name", "Name", FieldType.STRING, required=True, max_length=200,
           aliases=["name", "client name", "full name", "company name", "business name"]),
    _field("email", "Email", FieldType.EMAIL,
           aliases=["email", "email address", "e-mail", "mail", "contact email"]),
    _field("phone", "Phone", FieldType.PHONE,
           aliases=["phone", "phone number", "telephone", "tel"]),
    _field("company", "Company", FieldType.STRING, max_length=200,
           aliases=["company", "organization", "org", "business"]),
    _field("website", "Website", FieldType.URL,
           aliases=["website", "web", "url", "site"]),
    _field("address", "Address", FieldType.STRING, max_length=500,
           aliases=["address", "street", "street address", "location"]),
    _field("city", "City", FieldType.STRING, max_length=100,
           aliases=["city", "town"]),
    _field("country", "Country", FieldType.STRING, max_length=100,
           aliases=["country", "nation"]),
    _field("industry", "Industry", FieldType.STRING, max_length=100,
           aliases=["industry", "sector", "vertical"]),
    _field("source", "Source", FieldType.STRING, max_length=100,
           aliases=["source", "acquisition source", "origin"]),
    _field("status", "Status", FieldType.ENUM,
           aliases=["status", "client status"],
           enum_values=["active", "inactive", "churned", "prospect"]),
    _field("notes", "Notes", FieldType.STRING, max_length=5000,
           aliases=["notes", "comments", "description"]),
    _field("tags", "Tags", FieldType.TAGS,
           aliases=["tags", "labels"]),
)

_REGISTRY: Dict[EntityType, Tuple[FieldDefinition, ...]] = {
    EntityType.CONTACTS: CONTACT_FIELDS,
    EntityType.LEADS: LEAD_FIELDS,
    EntityType.CLIENTS: CLIENT_FIELDS,
}


def _check_unique_names() -> None:
    for entity, fields in _REGISTRY.items():
        names = [f.name for f in fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise RuntimeError(f"Duplicate field names for {entity.value}: {duplicates}")


_check_unique_names()


def resolve_entity_type(entity_type) -> EntityType:
    """Coerce a string or EntityType into an EntityType, raising for unknown values."""
    if isinstance(entity_type, EntityType):
        return entity_type
    try:
        return EntityType(str(entity_type).strip().lower())
    except ValueError:
        raise UnknownEntityTypeError(str(entity_type)) from None


def fields_for(entity_type) -> List[FieldDefinition]:
    return list(_REGISTRY[resolve_entity_type(entity_type)])


def required_fields_for(entity_type) -> List[FieldDefinition]:
    return [f for f in fields_for(entity_type) if f.required]


def field_by_name(entity_type, name: Optional[str]) -> Optional[FieldDefinition]:
    if not name:
        return None
    for field_def in fields_for(entity_type):
        if field_def.name == name:
            return field_def
    return None


def default_duplicate_key(entity_type) -> str:
    """Contacts de-duplicate on email; every other entity on its name."""
    return "email" if resolve_entity_type(entity_type) is EntityType.CONTACTS else "name"
