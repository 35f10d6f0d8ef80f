"""
Audit Runner
============

High-level entry point that orchestrates the privileged-access audit:
1. Directory access (live LDAP or a JSON snapshot)
2. Privileged-group location (name, with SID fallback)
3. Membership resolution
4. Row projection
5. Report writing (members report + warnings report)

Design Decisions:
-----------------
1. Single entry point (run_audit) for the CLI and for scripting
2. Rows are projected as the resolver yields them; a fatal directory error
   part-way still leaves every row produced so far in the written report
3. Progress updates via callback, same as every other component
"""

from datetime import datetime
from typing import Callable, Optional

from .config import PrivadConfig
from .errors import AuditAbortedError, DirectoryError
from .ingestion.gateway import DirectoryGateway
from .ingestion.ldap_gateway import LDAPGateway
from .ingestion.snapshot import SnapshotDirectory
from .model.attributes import AttributeSchemaCatalog
from .model.membership_graph import MembershipGraph
from .model.schemas import AuditResult
from .analysis.audit_warnings import WarningsCollector
from .analysis.privileged_groups import PrivilegedGroupLocator, default_privileged_groups
from .analysis.resolver import AuditContext, MembershipResolver
from .reporting.projector import RowProjector
from .reporting.report_builder import ReportSink


MEMBERS_REPORT = ("PrivilegedMembers", "Privileged group members")
WARNINGS_REPORT = ("Warnings", "Audit warnings")
WARNING_COLUMNS = ["Row", "Kind", "Subject", "Message", "Timestamp"]


def _build_config(config: Optional[dict], output_dir: Optional[str]) -> PrivadConfig:
    config = dict(config or {})
    if output_dir:
        config.setdefault("output", {})
        config["output"] = dict(config["output"], output_dir=output_dir)
    return PrivadConfig.from_dict(config)


def privileged_group_candidates(privad_config: PrivadConfig, domain_sid: str) -> dict:
    """Ordered mapping of group name -> expected SID for this run."""
    audit = privad_config.audit
    groups = dict(audit.privileged_groups) if audit.privileged_groups else default_privileged_groups(domain_sid)
    for name in audit.extra_groups:
        groups.setdefault(name, None)
    return groups


def run_audit(
    username: Optional[str] = None,
    password: Optional[str] = None,
    ntlm_hash: Optional[str] = None,
    domain: Optional[str] = None,
    server_ip: Optional[str] = None,
    snapshot: Optional[str] = None,
    gateway: Optional[DirectoryGateway] = None,
    output_dir: Optional[str] = None,
    config: Optional[dict] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> AuditResult:
    """Main entry point for running the privileged-access audit.

    Works with one of:
    1. LDAP credentials (live collection from a domain controller)
    2. A JSON snapshot file
    3. An already constructed DirectoryGateway

    Args:
        username: Domain username for LDAP
        password: Domain password for LDAP (falls back to PRIVAD_PASSWORD)
        ntlm_hash: NTLM hash instead of a password
        domain: Domain name (e.g., "corp.local")
        server_ip: Domain controller IP address
        snapshot: Path to a directory snapshot JSON file
        gateway: Pre-built gateway (takes precedence over the above)
        output_dir: Directory for report files
        config: Optional configuration dictionary (see PrivadConfig.from_dict)
        progress_callback: Optional callback for progress updates

    Returns:
        AuditResult with row counts, warnings, graph summary and report paths

    Raises:
        ValueError: if no directory source was given
        AuditAbortedError: if a directory error stopped the audit; its
            `result` holds the partial AuditResult
    """

    privad_config = _build_config(config, output_dir)

    def log(message: str):
        """Log message to callback if provided."""
        if progress_callback:
            progress_callback(message)
        if privad_config.verbose:
            print(message)

    owns_gateway = gateway is None
    source = "gateway"
    if gateway is None:
        if snapshot:
            log(f"[*] Loading directory snapshot {snapshot}...")
            gateway = SnapshotDirectory.load(snapshot)
            source = f"snapshot:{snapshot}"
        elif domain and server_ip:
            log("[*] Starting LDAP audit...")
            log(f"[*] Target: {server_ip}")
            log(f"[*] Domain: {domain}")
            gateway = LDAPGateway(
                server_ip=server_ip,
                domain=domain,
                username=username,
                password=password,
                ntlm_hash=ntlm_hash,
                config=privad_config.ldap,
                verbose=False,
                progress_callback=log
            )
            gateway.connect()
            source = f"ldap://{server_ip}"
        else:
            raise ValueError("Must provide LDAP connection details (domain and server) or a snapshot file")

    catalog = AttributeSchemaCatalog()
    warnings = WarningsCollector(progress_callback=log)
    context = AuditContext(
        gateway=gateway,
        catalog=catalog,
        warnings=warnings,
        expected_member_classes=frozenset(c.lower() for c in privad_config.audit.expected_member_classes)
    )

    locator = PrivilegedGroupLocator(gateway, catalog, warnings, progress_callback=log)
    resolver = MembershipResolver(context, progress_callback=log)
    projector = RowProjector(catalog.all_output)
    graph = MembershipGraph()
    sink = ReportSink(
        output_dir=privad_config.output.output_dir,
        formats=privad_config.output.formats,
        csv_delimiter=privad_config.output.csv_delimiter,
        verbose=False,
        progress_callback=log
    )

    candidates = privileged_group_candidates(privad_config, gateway.domain_sid)
    log(f"[*] Auditing {len(candidates)} privileged group candidates...")

    rows = []
    groups_audited = []
    failure: Optional[DirectoryError] = None

    try:
        for name, group in locator.locate_all(candidates):
            graph.add_root(group, name)
            count_before = len(rows)
            for resolved in resolver.resolve_members(group.distinguished_name):
                graph.add_member(resolved)
                rows.append(projector.project_member(resolved, group, name))
            groups_audited.append(name)
            log(f"[+] {name}: {len(rows) - count_before} member rows")
    except DirectoryError as e:
        failure = e
        log(f"[!] Directory error, audit stopped: {e}")
    finally:
        if owns_gateway:
            gateway.close()

    members_paths = sink.emit(*MEMBERS_REPORT, rows, columns=list(projector.output_columns))
    warnings_paths = sink.emit(*WARNINGS_REPORT, warnings.rows(), columns=WARNING_COLUMNS)

    result = AuditResult(
        total_rows=len(rows),
        groups_audited=groups_audited,
        warnings=list(warnings.records),
        report_paths={
            MEMBERS_REPORT[0]: members_paths,
            WARNINGS_REPORT[0]: warnings_paths,
        },
        graph_summary=graph.summary(),
        error=str(failure) if failure else None,
        metadata={
            'timestamp': datetime.now().isoformat(),
            'source': source,
            'domain': domain or '',
            'domain_sid': gateway.domain_sid,
        }
    )
    result.report_paths['Summary'] = [sink.write_summary(result)]

    if failure is not None:
        raise AuditAbortedError(str(failure), result) from failure

    log(f"[+] Audit complete: {result.total_rows} rows, {len(result.warnings)} warnings")
    return result
