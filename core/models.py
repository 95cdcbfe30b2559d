# =============================================================================
# core/models.py - Provisioning data models
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from enum import Enum

MAX_MESSAGE_LENGTH = 200


def truncate_text(value: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    """Trim a message or reason string to the log line budget"""
    if value is None:
        return ""
    value = str(value)
    return value if len(value) <= limit else value[:limit]


class OutcomeLevel(Enum):
    """Level tag attached to each outcome line"""
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    DUPLICATE_USER = "DuplicateUserInAD"
    MISSING_OU = "MissingOU"
    INVALID_INPUT = "InvalidInput"
    USERNAME_TRUNCATED = "UsernameTruncated"
    USERNAME_DEDUP = "UsernameDedup"
    AD_QUERY = "ADQuery"
    AD_CREATE = "ADCreate"


SKIPPED_LEVELS = {OutcomeLevel.INVALID_INPUT, OutcomeLevel.MISSING_OU, OutcomeLevel.DUPLICATE_USER}
ERRORED_LEVELS = {OutcomeLevel.AD_QUERY, OutcomeLevel.AD_CREATE, OutcomeLevel.ERROR}


class PasswordMode(Enum):
    """How the initial account secret is chosen"""
    RANDOM = "random"
    FIXED = "fixed"


@dataclass(frozen=True)
class PersonRecord:
    """One row of the people input"""
    first_name: str
    last_name: str
    department_id: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()


@dataclass(frozen=True)
class ResolvedIdentity:
    """Identifier pair verified absent from the directory"""
    sam_account_name: str
    user_principal_name: str


@dataclass
class Outcome:
    """Structured record of what happened to one input row"""
    level: OutcomeLevel
    message: str
    context: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.message = truncate_text(self.message)
        self.context = {str(k): truncate_text(v) for k, v in self.context.items()}

    def format_line(self) -> str:
        """Render as '<timestamp> [<Level>] <message> | key=value ...'"""
        line = f"{self.timestamp.isoformat(timespec='seconds')} [{self.level.value}] {self.message}"
        if self.context:
            line += " | " + " ".join(
                f"{key}={_quote(value)}" for key, value in self.context.items()
            )
        return line


def _quote(value: str) -> str:
    if value == "" or any(ch.isspace() or ch in '="' for ch in value):
        return '"' + value.replace('"', '\\"') + '"'
    return value


@dataclass
class Resolution:
    """Result of a uniqueness search: either a found identity or exhaustion"""
    base_identifier: str
    identity: Optional[ResolvedIdentity] = None
    attempt: Optional[int] = None
    diagnostics: List[Outcome] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.identity is not None


@dataclass
class ProvisioningSettings:
    """Run-level settings consumed by the provisioning loop"""
    upn_suffix: str
    mail_domain: str
    password_mode: PasswordMode = PasswordMode.RANDOM
    fixed_password: Optional[str] = None
    max_records: int = 100
    dry_run: bool = False


@dataclass
class ProvisioningStats:
    """Run-level counters"""
    total_records: int = 0
    created: int = 0
    skipped: int = 0
    errored: int = 0
    simulated: int = 0
    level_counts: Dict[OutcomeLevel, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Share of processed records that were created or simulated"""
        if self.total_records == 0:
            return 0.0
        return ((self.created + self.simulated) / self.total_records) * 100
