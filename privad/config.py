"""
privAD Configuration Module
===========================

Centralized configuration management for the privAD audit.
Supports environment variables for sensitive data (bind password).

Design Decision:
- Configuration is a dataclass tree that can be passed through the pipeline
- The privileged-group list defaults to the well-known groups but can be
  replaced or extended without code changes
- Output paths are configurable for flexibility in different environments
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path


@dataclass
class LDAPConfig:
    """Configuration for the LDAP directory gateway.

    Attributes:
        use_ssl: Whether to use LDAPS (port 636) vs LDAP (port 389)
        port: Explicit port, auto-detected from use_ssl when None
        page_size: Page size for LDAP searches
        timeout: Connection and receive timeout in seconds
        password: Bind password (loaded from PRIVAD_PASSWORD if not provided)
    """
    use_ssl: bool = False
    port: Optional[int] = None  # Auto-detect based on use_ssl
    page_size: int = 1000
    timeout: int = 30
    password: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if self.port is None:
            self.port = 636 if self.use_ssl else 389
        if self.password is None:
            self.password = os.environ.get("PRIVAD_PASSWORD")


@dataclass
class AuditConfig:
    """Configuration for the privileged-membership audit.

    Attributes:
        privileged_groups: Ordered mapping of group display name to expected
            SID (None means look up by name only). None uses the well-known
            defaults built from the domain SID.
        extra_groups: Additional group names audited after the defaults
        expected_member_classes: Object classes outside user/computer/group
            that are expected in privileged groups and do not raise a warning
    """
    privileged_groups: Optional[dict] = None
    extra_groups: list = field(default_factory=list)
    expected_member_classes: list = field(default_factory=lambda: [
        "foreignSecurityPrincipal",
        "msDS-ManagedServiceAccount",
        "msDS-GroupManagedServiceAccount",
    ])


@dataclass
class OutputConfig:
    """Configuration for output and reporting.

    Attributes:
        output_dir: Directory for report files
        formats: Report formats to write (csv, json)
        csv_delimiter: Field delimiter for CSV reports
    """
    output_dir: str = "output"
    formats: list = field(default_factory=lambda: ["csv", "json"])
    csv_delimiter: str = ","

    def __post_init__(self):
        """Ensure output directory exists."""
        Path(self.output_dir).mkdir(parents=True, exist_ok=True)


@dataclass
class PrivadConfig:
    """Main configuration container for privAD.

    Usage:
        config = PrivadConfig()  # Uses all defaults
        config = PrivadConfig(output=OutputConfig(formats=["json"]))
    """
    ldap: LDAPConfig = field(default_factory=LDAPConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Verbosity level for progress output
    verbose: bool = True

    @classmethod
    def from_dict(cls, config_dict: dict) -> "PrivadConfig":
        """Create configuration from a dictionary.

        Useful for loading from JSON files or CLI inputs.
        """
        ldap_config = LDAPConfig(**config_dict.get("ldap", {}))
        audit_config = AuditConfig(**config_dict.get("audit", {}))
        output_config = OutputConfig(**config_dict.get("output", {}))

        return cls(
            ldap=ldap_config,
            audit=audit_config,
            output=output_config,
            verbose=config_dict.get("verbose", True)
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization."""
        from dataclasses import asdict
        data = asdict(self)
        data["ldap"].pop("password", None)
        return data


# Default global configuration instance
_default_config: Optional[PrivadConfig] = None


def get_config() -> PrivadConfig:
    """Get the global configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = PrivadConfig()
    return _default_config


def set_config(config: PrivadConfig) -> None:
    """Set the global configuration instance."""
    global _default_config
    _default_config = config
