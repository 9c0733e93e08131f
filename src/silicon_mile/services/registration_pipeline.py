"""Three-step event registration wizard"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from silicon_mile.auth.models import SessionUser
from silicon_mile.models.registration import Registration
from silicon_mile.models.registration_form import (
    REGISTRATION_FIELDS,
    STEP_FIELDS,
    RegistrationData,
    WizardStep,
    field_errors,
    validate_step,
)
from silicon_mile.services.registration_service import (
    RegistrationError,
    RegistrationService,
)
from silicon_mile.services.registration_state_manager import RegistrationStateManager

logger = logging.getLogger(__name__)


@dataclass
class WizardState:
    step: WizardStep
    values: Dict[str, str]

    @classmethod
    def initial(cls) -> "WizardState":
        return cls(
            step=WizardStep.PERSONAL_INFO,
            values={name: "" for name in REGISTRATION_FIELDS},
        )

    @classmethod
    def from_dict(cls, state: Dict[str, Any]) -> "WizardState":
        return cls(step=WizardStep(state["step"]), values=dict(state["values"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step.value, "values": self.values}


@dataclass
class StepResult:
    state: WizardState
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class SubmitOutcome(str, enum.Enum):
    CREATED = "created"
    INVALID = "invalid"
    REJECTED = "rejected"
    # Another submission for the same user is still being written
    IGNORED = "ignored"
    # The wizard has not reached the last step
    NOT_READY = "not_ready"


@dataclass
class SubmitResult:
    outcome: SubmitOutcome
    state: WizardState
    errors: Dict[str, str] = field(default_factory=dict)
    error_message: Optional[str] = None
    registration: Optional[Registration] = None


class RegistrationPipeline:
    """
    Per-user registration wizard: Personal Info -> Company Details -> Additional Info.

    Steps only move forward through next(), which validates the current
    step's fields; back() never validates and keeps what was typed. The
    step lives server-side, so a client cannot skip ahead. submit() writes
    exactly one registration row and is a no-op while another submission
    for the same user is in flight.
    """

    def __init__(
        self,
        state_manager: RegistrationStateManager,
        registration_service: RegistrationService,
    ):
        self.state_manager = state_manager
        self.registration_service = registration_service

    def current(self, user: SessionUser) -> WizardState:
        return WizardState.from_dict(self.state_manager.get_state(user.id))

    def _merge(self, state: WizardState, form_data: Mapping[str, Any]) -> None:
        for name in STEP_FIELDS[state.step]:
            value = form_data.get(name)
            if value is not None:
                state.values[name] = str(value).strip()

    def _save(self, user: SessionUser, state: WizardState) -> None:
        self.state_manager.save_state(user.id, state.to_dict())

    def next(self, user: SessionUser, form_data: Mapping[str, Any]) -> StepResult:
        """
        Validate the current step and advance one step.

        Args:
            user: Signed-in user owning the wizard
            form_data: Posted values; only the current step's fields are taken

        Returns:
            StepResult with the new state, or field errors and the unchanged step
        """
        state = self.current(user)
        self._merge(state, form_data)

        errors = validate_step(state.step, state.values)
        if not errors and state.step < WizardStep.ADDITIONAL_INFO:
            state.step = WizardStep(state.step + 1)

        self._save(user, state)
        return StepResult(state=state, errors=errors)

    def back(
        self, user: SessionUser, form_data: Optional[Mapping[str, Any]] = None
    ) -> WizardState:
        """Step back one step, keeping whatever was typed on the current step unvalidated"""
        state = self.current(user)
        if form_data:
            self._merge(state, form_data)
        if state.step > WizardStep.PERSONAL_INFO:
            state.step = WizardStep(state.step - 1)
        self._save(user, state)
        return state

    def submit(self, user: SessionUser, form_data: Mapping[str, Any]) -> SubmitResult:
        """
        Validate the last step and write the registration.

        Args:
            user: Signed-in user registering for the event
            form_data: Posted values for the last step

        Returns:
            SubmitResult; on CREATED the wizard state is cleared, on REJECTED the
            store's message is returned verbatim and the wizard stays on the last step
        """
        state = self.current(user)
        if state.step != WizardStep.ADDITIONAL_INFO:
            logger.warning(
                f"Ignoring submit from user {user.id} at step {state.step.value}"
            )
            return SubmitResult(outcome=SubmitOutcome.NOT_READY, state=state)

        self._merge(state, form_data)
        errors = validate_step(state.step, state.values)
        if errors:
            self._save(user, state)
            return SubmitResult(outcome=SubmitOutcome.INVALID, state=state, errors=errors)

        try:
            data = RegistrationData.model_validate(state.values)
        except ValidationError as e:
            # Earlier steps no longer validate; send the user back to the first bad one
            errors = field_errors(e)
            state.step = next(
                (
                    step
                    for step in WizardStep
                    if any(name in errors for name in STEP_FIELDS[step])
                ),
                WizardStep.PERSONAL_INFO,
            )
            self._save(user, state)
            return SubmitResult(outcome=SubmitOutcome.INVALID, state=state, errors=errors)

        if not self.state_manager.acquire_submit_lock(user.id):
            logger.info(f"Submission already in flight for user {user.id}")
            return SubmitResult(outcome=SubmitOutcome.IGNORED, state=state)

        try:
            registration = self.registration_service.create_registration(
                user, data, registration_date=datetime.now(timezone.utc)
            )
        except RegistrationError as e:
            self._save(user, state)
            return SubmitResult(
                outcome=SubmitOutcome.REJECTED, state=state, error_message=e.message
            )
        finally:
            self.state_manager.release_submit_lock(user.id)

        self.state_manager.clear_state(user.id)
        return SubmitResult(
            outcome=SubmitOutcome.CREATED, state=state, registration=registration
        )
