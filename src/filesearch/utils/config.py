"""Settings for the retrieveDocs audit trail."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuditConfig:
    log_dir: str = "./logs"
    file_name: str = "audit.jsonl"
    # loguru rotation / retention / compression syntax
    rotation: str = "10 MB"
    retention: str = "30 days"
    compression: str = "gz"
    max_question_chars: int = 500


DEFAULT_AUDIT_CONFIG = AuditConfig()
