"""Preference models (Pydantic models with camelCase JSON aliases)."""

from typing import Literal

from pydantic import BaseModel, Field

RiskLevel = Literal["none", "low", "medium", "high", "critical"]

RISK_ORDER: list[str] = ["none", "low", "medium", "high", "critical"]


class CategoryTolerances(BaseModel):
    device_control: int = Field(40, ge=0, le=100, alias="deviceControl")
    file_operations: int = Field(20, ge=0, le=100, alias="fileOperations")
    network_requests: int = Field(30, ge=0, le=100, alias="networkRequests")
    notifications: int = Field(80, ge=0, le=100)
    data_modification: int = Field(25, ge=0, le=100, alias="dataModification")

    model_config = {"populate_by_name": True}


class AutonomySettings(BaseModel):
    enabled: bool = True
    max_auto_risk: RiskLevel = Field("low", alias="maxAutoRisk")
    confirm_external: bool = Field(True, alias="confirmExternal")
    confirm_irreversible: bool = Field(True, alias="confirmIrreversible")

    model_config = {"populate_by_name": True}


class InterruptionSettings(BaseModel):
    quiet_hours_start: int = Field(22, ge=0, le=23, alias="quietHoursStart")
    quiet_hours_end: int = Field(7, ge=0, le=23, alias="quietHoursEnd")
    focus_apps: list[str] = Field(
        default_factory=lambda: ["code", "vscode", "intellij", "ableton", "pro tools"],
        alias="focusApps",
    )
    max_per_hour: int = Field(15, ge=0, alias="maxPerHour")

    model_config = {"populate_by_name": True}


class CommunicationSettings(BaseModel):
    verbosity: Literal["minimal", "normal", "detailed"] = "normal"
    formality: Literal["casual", "neutral", "formal"] = "neutral"
    proactivity: Literal["reactive", "balanced", "proactive"] = "balanced"


class LearningSettings(BaseModel):
    track_patterns: bool = Field(True, alias="trackPatterns")
    remember_preferences: bool = Field(True, alias="rememberPreferences")
    enable_suggestions: bool = Field(True, alias="enableSuggestions")

    model_config = {"populate_by_name": True}


class UserPreferences(BaseModel):
    """Everything a user can tune about how much the assistant does on its own."""

    user_id: str = Field(alias="userId")
    risk_tolerance: int = Field(30, ge=0, le=100, alias="riskTolerance")
    category_tolerances: CategoryTolerances = Field(default_factory=CategoryTolerances, alias="categoryTolerances")
    autonomy: AutonomySettings = Field(default_factory=AutonomySettings)
    interruptions: InterruptionSettings = Field(default_factory=InterruptionSettings)
    communication: CommunicationSettings = Field(default_factory=CommunicationSettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)

    model_config = {"populate_by_name": True}
