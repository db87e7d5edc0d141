from pydantic import BaseModel, Field, constr
from typing import Optional, List, Dict, Any, Literal, Union
from pydantic.config import ConfigDict

Number = Union[int, float]

UsernameStr = constr(
    strip_whitespace=True,
    min_length=3,
    max_length=50,
    pattern=r"^[A-Za-z0-9_.@-]+$",
)


# --- Configuration records ---
class DeviceSettings(BaseModel):
    """
    Scalar device configuration. Every field is optional so that a partially
    imported sheet is still a DeviceSettings; ranges are only checked by
    services.validation.
    """

    freefall: Optional[Number] = None
    hptf: Optional[Number] = None
    harmonic: Optional[Number] = None
    duration_ms: Optional[Number] = None
    extra_parameters: Dict[str, Number] = Field(default_factory=dict)

    def known_values(self) -> Dict[str, Number]:
        values = {
            "freefall": self.freefall,
            "hptf": self.hptf,
            "harmonic": self.harmonic,
            "duration_ms": self.duration_ms,
        }
        return {key: value for key, value in values.items() if value is not None}

    def set_values(self) -> Dict[str, Number]:
        return {**self.known_values(), **self.extra_parameters}


class VoutEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None
    vout_base: Optional[Number] = None
    freq: Optional[Number] = None


class TestParameter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None
    name: Optional[str] = None
    quantity: Number = 0
    vout_base: Optional[Number] = None
    freq: Optional[Number] = None

    @property
    def key(self) -> str:
        return str(self.symbol or self.name or "").strip()


class ConfigSnapshot(BaseModel):
    device_settings: DeviceSettings = Field(default_factory=DeviceSettings)
    vout_table: List[VoutEntry] = Field(default_factory=list)
    stp_data: List[TestParameter] = Field(default_factory=list)


class BackupInfo(BaseModel):
    timestamp: str
    version: str
    description: str = "Automatic backup of Aquatron data"


# --- Validation ---
class FileCheck(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ValidationSummary(BaseModel):
    total_errors: int = 0
    total_warnings: int = 0
    device_settings_valid: bool = False
    stp_data_valid: bool = False
    vout_table_valid: bool = False


class ValidationReport(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)


# --- Import ---
class ImportResult(BaseModel):
    device_settings: DeviceSettings = Field(default_factory=DeviceSettings)
    vout_table: List[VoutEntry] = Field(default_factory=list)
    stp_data: List[TestParameter] = Field(default_factory=list)
    success: bool = True
    message: str = "Data imported successfully"
    warnings: List[str] = Field(default_factory=list)
    imported_sheets: List[str] = Field(default_factory=list)
    total_rows: int = 0
    validation: Optional[ValidationReport] = None
    backup_info: Optional[BackupInfo] = None

    def to_snapshot(self) -> ConfigSnapshot:
        return ConfigSnapshot(
            device_settings=self.device_settings,
            vout_table=self.vout_table,
            stp_data=self.stp_data,
        )


# --- Diff ---
class FieldChange(BaseModel):
    original: Optional[Number] = None
    new: Optional[Number] = None


class DiffEntry(BaseModel):
    type: Literal["added", "modified", "removed"]
    symbol: Optional[str] = None
    original: Optional[TestParameter] = None
    new: Optional[TestParameter] = None


class DiffSummary(BaseModel):
    total_changes: int = 0
    device_settings_changes: int = 0
    stp_data_changes: int = 0
    vout_table_changes: int = 0


class DiffReport(BaseModel):
    device_settings: Dict[str, FieldChange] = Field(default_factory=dict)
    stp_data: List[DiffEntry] = Field(default_factory=list)
    # Declared for symmetry with the summary; Vout rows are not diffed.
    vout_table: List[DiffEntry] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)


class CompareRequest(BaseModel):
    original: ConfigSnapshot
    updated: ConfigSnapshot


class CompareResult(BaseModel):
    success: bool
    differences: Optional[DiffReport] = None
    error: Optional[str] = None


# --- Façade results ---
class OperationResult(BaseModel):
    success: bool
    message: str
    filename: Optional[str] = None
    error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class TransformResult(BaseModel):
    success: bool
    format: str
    data: Any = None
    error: Optional[str] = None


class DeviceStpRow(BaseModel):
    symbol: Optional[str] = None
    quantity: Number = 100
    vout_base: Optional[Number] = None
    freq: Optional[Number] = None


# --- Users / Auth ---
class UserRead(BaseModel):
    username: str
    role: str


class LoginRequest(BaseModel):
    username: UsernameStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
