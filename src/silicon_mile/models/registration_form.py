"""Validation schemas for the registration wizard and account forms"""

import enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError

from silicon_mile.models.registration import TShirtSize


class WizardStep(int, enum.Enum):
    PERSONAL_INFO = 1
    COMPANY_DETAILS = 2
    ADDITIONAL_INFO = 3

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    WizardStep.PERSONAL_INFO: "Personal Info",
    WizardStep.COMPANY_DETAILS: "Company Details",
    WizardStep.ADDITIONAL_INFO: "Additional Info",
}


class _FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class PersonalInfo(_FormModel):
    full_name: str = Field(min_length=2)
    corporate_email: EmailStr
    employee_id: str = Field(min_length=1)


class CompanyDetails(_FormModel):
    company_name: str = Field(min_length=2)


class AdditionalInfo(_FormModel):
    tshirt_size: TShirtSize
    emergency_contact: str = Field(min_length=2)
    emergency_phone: str = Field(min_length=10)


class RegistrationData(PersonalInfo, CompanyDetails, AdditionalInfo):
    """All fields collected by the three wizard steps"""


STEP_MODELS = {
    WizardStep.PERSONAL_INFO: PersonalInfo,
    WizardStep.COMPANY_DETAILS: CompanyDetails,
    WizardStep.ADDITIONAL_INFO: AdditionalInfo,
}

STEP_FIELDS: Dict[WizardStep, List[str]] = {
    step: list(model.model_fields) for step, model in STEP_MODELS.items()
}

REGISTRATION_FIELDS = [field for fields in STEP_FIELDS.values() for field in fields]

FIELD_MESSAGES = {
    "full_name": "Full name must be at least 2 characters",
    "corporate_email": "Please enter a valid email address",
    "employee_id": "Employee ID is required",
    "company_name": "Company name must be at least 2 characters",
    "tshirt_size": "Please select a T-shirt size",
    "emergency_contact": "Emergency contact name is required",
    "emergency_phone": "Emergency contact phone is required",
    # Account forms
    "email": "Please enter a valid email address",
    "password": "Password must be at least 6 characters",
    "company": "Company name must be at least 2 characters",
}

LOGIN_MESSAGES = {**FIELD_MESSAGES, "password": "Password is required"}


def field_errors(
    error: ValidationError, messages: Dict[str, str] = FIELD_MESSAGES
) -> Dict[str, str]:
    """Collapse pydantic errors into one user-facing message per field"""
    errors: Dict[str, str] = {}
    for item in error.errors():
        field = str(item["loc"][0]) if item["loc"] else "__all__"
        errors.setdefault(field, messages.get(field, item["msg"]))
    return errors


def validate_step(step: WizardStep, values: Dict[str, Any]) -> Dict[str, str]:
    """
    Validate only the fields that belong to a wizard step.

    Args:
        step: Step whose fields should be checked
        values: Collected form values (other steps' fields are ignored)

    Returns:
        Mapping of field name to error message, empty when the step is valid
    """
    model = STEP_MODELS[step]
    payload = {field: values.get(field, "") for field in STEP_FIELDS[step]}
    try:
        model.model_validate(payload)
    except ValidationError as e:
        return field_errors(e)
    return {}


# Passwords are taken as typed, so account forms do not strip whitespace
class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignupForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=2)
    company: str = Field(min_length=2)
