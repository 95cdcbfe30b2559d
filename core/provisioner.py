# =============================================================================
# core/provisioner.py - Bulk account provisioning workflow
# =============================================================================

from typing import Dict, List, Optional, Set
import logging

from core.directory import DirectoryService, DirectoryError
from core.identifiers import build_base_identifier
from core.models import (
    Outcome, OutcomeLevel, PasswordMode, PersonRecord, ProvisioningSettings, ResolvedIdentity
)
from core.outcome_log import OutcomeLog
from core.resolver import UniquenessResolver
from utils.passwords import generate_password
from utils.secret_log import EncryptedSecretLog


class UserProvisioner:
    """Creates directory accounts for a list of people, one record at a time"""

    def __init__(self, directory: DirectoryService, settings: ProvisioningSettings,
                 secret_log: Optional[EncryptedSecretLog] = None):
        self.directory = directory
        self.settings = settings
        self.secret_log = secret_log
        self.resolver = UniquenessResolver(directory)
        self.assigned: Set[str] = set()
        self.logger = logging.getLogger(self.__class__.__name__)

    def process_users(self, records: List[PersonRecord],
                      department_map: Dict[str, str]) -> OutcomeLog:
        """Main provisioning workflow. Returns the outcome log for this run."""
        mode = "dry run" if self.settings.dry_run else "live"
        self.logger.info(f"Starting {self.__class__.__name__} ({mode}) for {len(records)} records")

        run_log = OutcomeLog()
        self.assigned = set()

        if len(records) > self.settings.max_records:
            run_log.record(Outcome(
                OutcomeLevel.WARNING,
                f"Input truncated to the first {self.settings.max_records} records",
                {'received': str(len(records)), 'max_records': str(self.settings.max_records)},
            ))
            records = records[:self.settings.max_records]

        run_log.stats.total_records = len(records)

        for row_number, record in enumerate(records, start=1):
            self.provision_single_user(record, department_map, run_log, row_number)

        run_log.log_statistics()
        return run_log

    def provision_single_user(self, record: PersonRecord, department_map: Dict[str, str],
                              run_log: OutcomeLog, row_number: int = 0) -> Outcome:
        """Run one record through validation, resolution, checks and creation"""
        first_name = (record.first_name or '').strip()
        last_name = (record.last_name or '').strip()
        department_id = (record.department_id or '').strip()

        context = {
            'row': str(row_number),
            'display_name': f"{first_name} {last_name}".strip(),
            'department': department_id,
        }

        try:
            outcome = self._provision(first_name, last_name, department_id, department_map,
                                      context, run_log)
        except Exception as e:
            self.logger.error(f"Unexpected error for row {row_number}: {e}")
            outcome = Outcome(OutcomeLevel.ERROR, f"Unexpected error: {e}",
                              dict(context, reason=str(e)))

        simulated = self.settings.dry_run and outcome.level == OutcomeLevel.INFO
        return run_log.record(outcome, simulated=simulated)

    def _provision(self, first_name: str, last_name: str, department_id: str,
                   department_map: Dict[str, str], context: Dict[str, str],
                   run_log: OutcomeLog) -> Outcome:
        if not first_name or not last_name:
            return Outcome(OutcomeLevel.INVALID_INPUT, "FirstName and LastName are required", context)

        if not department_id:
            return Outcome(OutcomeLevel.INVALID_INPUT, "DepartmentID is required", context)

        base_identifier = build_base_identifier(first_name, last_name)
        if not base_identifier:
            return Outcome(OutcomeLevel.INVALID_INPUT, "Name normalizes to an empty identifier", context)
        context['base'] = base_identifier

        try:
            resolution = self.resolver.try_resolve(
                base_identifier, self.settings.upn_suffix, reserved=self.assigned
            )
        except Exception as e:
            return Outcome(OutcomeLevel.AD_QUERY, f"Identifier resolution failed: {e}",
                           dict(context, reason=str(e)))

        for diagnostic in resolution.diagnostics:
            diagnostic.context = dict(context, **diagnostic.context)
            run_log.note(diagnostic)

        if not resolution.found:
            return Outcome(OutcomeLevel.AD_QUERY, "No free identifier found after 100 attempts", context)

        identity = resolution.identity
        context['identifier'] = identity.sam_account_name
        context['principal'] = identity.user_principal_name

        ou_path = (department_map.get(department_id) or '').strip()
        if not ou_path:
            return Outcome(OutcomeLevel.MISSING_OU, f"No OU mapped for department {department_id}", context)
        context['ou'] = ou_path

        ou_problem = self._check_ou(ou_path, context)
        if ou_problem:
            return ou_problem

        secret = self._select_password(identity)
        if secret is None:
            return Outcome(OutcomeLevel.ERROR,
                           "Fixed password mode selected but no password configured", context)

        duplicate = self._recheck_duplicate(identity, context)
        if duplicate:
            return duplicate

        mail = f"{identity.sam_account_name}@{self.settings.mail_domain}"
        context['mail'] = mail

        if self.settings.dry_run:
            self._reserve(identity)
            return Outcome(OutcomeLevel.INFO, "Account creation simulated", context)

        try:
            self.directory.create_account(
                identity.sam_account_name,
                identity.user_principal_name,
                mail,
                context['display_name'],
                ou_path,
                secret,
                force_change_at_next_logon=True,
                given_name=first_name,
                surname=last_name,
            )
        except DirectoryError as e:
            return Outcome(OutcomeLevel.AD_CREATE, f"Account creation failed: {e.reason}",
                           dict(context, reason=e.reason))

        self._reserve(identity)
        return Outcome(OutcomeLevel.INFO, "Account created", context)

    def _reserve(self, identity: ResolvedIdentity) -> None:
        """Keep later records of this run off an identity that was just handed out"""
        self.assigned.add(identity.sam_account_name.lower())
        self.assigned.add(identity.user_principal_name.lower())

    def _check_ou(self, ou_path: str, context: Dict[str, str]) -> Optional[Outcome]:
        """MissingOU outcome when the OU is absent or cannot be verified"""
        try:
            exists = self.directory.organizational_unit_exists(ou_path)
        except DirectoryError as e:
            return Outcome(OutcomeLevel.MISSING_OU, "OU could not be verified",
                           dict(context, reason=e.reason))

        if not exists:
            return Outcome(OutcomeLevel.MISSING_OU, "OU not found in directory", context)
        return None

    def _select_password(self, identity: ResolvedIdentity) -> Optional[str]:
        if self.settings.password_mode == PasswordMode.FIXED:
            return self.settings.fixed_password or None

        secret = generate_password()
        if self.secret_log and not self.settings.dry_run:
            try:
                self.secret_log.record(identity.sam_account_name, secret)
            except OSError as e:
                self.logger.warning(
                    f"Could not write secret log entry for {identity.sam_account_name}: {e}"
                )
        return secret

    def _recheck_duplicate(self, identity: ResolvedIdentity,
                           context: Dict[str, str]) -> Optional[Outcome]:
        """Closes the window between resolution and creation"""
        try:
            existing = self.directory.find_by_identifier_or_principal(
                identity.sam_account_name, identity.user_principal_name
            )
        except DirectoryError as e:
            return Outcome(OutcomeLevel.AD_QUERY, f"Duplicate re-check failed: {e.reason}",
                           dict(context, reason=e.reason))

        if existing:
            return Outcome(OutcomeLevel.DUPLICATE_USER,
                           "Account appeared in directory before creation", context)
        return None
