"""
Concierge Configuration Schema

Pydantic models for the operator-maintained YAML configuration:
policies.yaml, faqs.yaml and the prompt text blocks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class IdentityVerificationPolicy(BaseModel):
    required_for: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)


class EscalationPolicy(BaseModel):
    triggers: list[str] = Field(default_factory=list)
    emergency_keywords: list[str]


class PolicyDefaults(BaseModel):
    checkin_time: str = "3:00 PM"
    checkout_time: str = "10:00 AM"
    max_guests_default: int = 6
    pet_policy: str = ""
    smoking_policy: str = ""
    party_policy: str = ""


class ConfidenceThresholds(BaseModel):
    auto_reply: float = Field(ge=0.0, le=1.0)
    approval_required: float = Field(ge=0.0, le=1.0)
    escalate_immediately: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _ordered(self) -> ConfidenceThresholds:
        if self.approval_required > self.auto_reply:
            raise ValueError("approval_required must not exceed auto_reply")
        return self


class ApprovalSettings(BaseModel):
    draft_mode_default: bool = True
    require_approval_first_contact: bool = True
    max_auto_replies_per_hour: int = 10
    approval_timeout_hours: int = 24


class PolicyConfig(BaseModel):
    identity_verification: IdentityVerificationPolicy = Field(
        default_factory=IdentityVerificationPolicy
    )
    red_lines: list[str] = Field(default_factory=list)
    escalation: EscalationPolicy
    defaults: PolicyDefaults = Field(default_factory=PolicyDefaults)
    confidence_thresholds: ConfidenceThresholds
    approval_settings: ApprovalSettings = Field(default_factory=ApprovalSettings)


class FAQConfig(BaseModel):
    defaults: dict[str, str] = Field(default_factory=dict)
    per_property_overrides: dict[str, dict[str, str]] = Field(default_factory=dict)


class PromptConfig(BaseModel):
    system: str
    tools: str


class AppConfig(BaseModel):
    policies: PolicyConfig
    faqs: FAQConfig
    prompts: PromptConfig


class PropertyFAQResult(BaseModel):
    topic: str
    answer: str
    source: str  # "default" or "property_override"
    property_id: str | None = None
