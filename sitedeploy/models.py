"""Value types passed between the reconciliation components."""

from dataclasses import asdict, dataclass, field
from enum import Enum


class StackState(str, Enum):
    """Statuses CloudFormation reports. An absent stack is ``None``, not a member."""

    CREATE_IN_PROGRESS = "create_in_progress"
    CREATE_COMPLETE = "create_complete"
    CREATE_FAILED = "create_failed"
    UPDATE_IN_PROGRESS = "update_in_progress"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "update_complete_cleanup_in_progress"
    UPDATE_COMPLETE = "update_complete"
    UPDATE_FAILED = "update_failed"
    UPDATE_ROLLBACK_IN_PROGRESS = "update_rollback_in_progress"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = "update_rollback_complete_cleanup_in_progress"
    UPDATE_ROLLBACK_COMPLETE = "update_rollback_complete"
    UPDATE_ROLLBACK_FAILED = "update_rollback_failed"
    ROLLBACK_IN_PROGRESS = "rollback_in_progress"
    ROLLBACK_COMPLETE = "rollback_complete"
    ROLLBACK_FAILED = "rollback_failed"
    DELETE_IN_PROGRESS = "delete_in_progress"
    DELETE_COMPLETE = "delete_complete"
    DELETE_FAILED = "delete_failed"
    REVIEW_IN_PROGRESS = "review_in_progress"
    IMPORT_IN_PROGRESS = "import_in_progress"
    IMPORT_COMPLETE = "import_complete"
    IMPORT_ROLLBACK_IN_PROGRESS = "import_rollback_in_progress"
    IMPORT_ROLLBACK_COMPLETE = "import_rollback_complete"
    IMPORT_ROLLBACK_FAILED = "import_rollback_failed"

    @classmethod
    def from_aws(cls, status: str) -> "StackState":
        """Map a CloudFormation StackStatus string (e.g. CREATE_COMPLETE)."""
        return cls(status.lower())

    @property
    def in_progress(self) -> bool:
        return self.value.endswith("_in_progress")

    @property
    def failed(self) -> bool:
        return self.value.endswith("_failed") or self in (
            StackState.ROLLBACK_COMPLETE,
            StackState.UPDATE_ROLLBACK_COMPLETE,
        )


@dataclass(frozen=True)
class StackSnapshot:
    """A stack as reported by describe_stacks."""

    name: str
    stack_id: str
    state: StackState
    outputs: dict = field(default_factory=dict)
    reason: str = ""


class StackOutcomeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    NO_CHANGES = "no_changes"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass(frozen=True)
class StackOutcome:
    kind: StackOutcomeKind
    stack_id: str = ""
    outputs: dict = field(default_factory=dict)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is not StackOutcomeKind.FAILED


@dataclass(frozen=True)
class AdoptedInfrastructure:
    """A live distribution already serving the domain, with its origin bucket."""

    distribution_id: str
    distribution_domain: str
    bucket_name: str


@dataclass(frozen=True)
class NotFound:
    """No adoptable distribution; provision fresh resources into bucket_name."""

    bucket_name: str


class CertificateStatus(str, Enum):
    PENDING_VALIDATION = "pending_validation"
    ISSUED = "issued"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class DnsRecord:
    name: str
    type: str
    content: str
    ttl: int = 600
    priority: int | None = None
    id: str | None = None

    @property
    def key(self) -> tuple:
        return (self.name.rstrip(".").lower(), self.type.upper())


@dataclass
class CertificateState:
    arn: str
    status: CertificateStatus
    subject_alternative_names: list = field(default_factory=list)
    challenge_records: list = field(default_factory=list)
    message: str = ""
    is_new: bool = False

    @property
    def issued(self) -> bool:
        return self.status is CertificateStatus.ISSUED


@dataclass(frozen=True)
class RecordResult:
    """Outcome of a provider write; providers report rejections here instead of raising."""

    success: bool
    message: str = ""
    id: str | None = None


@dataclass(frozen=True)
class HostingConflict:
    """A CNAME for the domain that points at another hosting provider."""

    record: DnsRecord
    hosting_provider: str


@dataclass
class DnsApplyResult:
    primary_ok: bool = False
    warnings: list = field(default_factory=list)
    written: list = field(default_factory=list)


@dataclass
class ReconciliationResult:
    success: bool
    stack_name: str
    bucket: str
    message: str
    domain: str = ""
    stack_id: str = ""
    distribution_id: str = ""
    distribution_domain: str = ""
    certificate_arn: str = ""
    adopted: bool = False
    warnings: list = field(default_factory=list)
    files_uploaded: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
